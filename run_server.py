import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
        # The sqlite file changes on every write; don't restart for it
        reload_excludes=["*.db"]
    )
