import uvicorn

from kisskh_addon.settings import settings

if __name__ == "__main__":
    uvicorn.run("kisskh_addon.main:app", host=settings.host, port=settings.port)
