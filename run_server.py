import uvicorn

from colorgen.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    print(f"Starting colorgen on :8000 (database: {settings.database_url}, dev_mode: {settings.dev_mode})")
    # factory=True: create_app() builds the container and the app
    uvicorn.run("colorgen.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=False)
