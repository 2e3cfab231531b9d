import os

if __name__ == "__main__":
    import uvicorn

    host = os.getenv("RESTBENCH_HOST", "127.0.0.1")
    port = int(os.getenv("RESTBENCH_PORT", "4010"))
    uvicorn.run("restbench.main:create_app", factory=True, host=host, port=port, log_level="info")
