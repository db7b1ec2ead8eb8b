import os

import uvicorn


def main() -> None:
    # Run the FastAPI app directly. For auto-reload, prefer the uvicorn CLI.
    uvicorn.run(
        "huddle.main:app",
        host=os.getenv("HUDDLE_HOST", "127.0.0.1"),
        port=int(os.getenv("HUDDLE_PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()
