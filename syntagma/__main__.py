from __future__ import annotations

import uvicorn

from syntagma.config import PORT


def main() -> None:
    uvicorn.run("syntagma.app:app", host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    main()
