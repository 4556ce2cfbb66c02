"""
Family Tree Layout - FastAPI Entry Point
"""
import logging

from fastapi import FastAPI

from api import tree

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Family Tree Layout",
    description="Sibling placement and connector geometry for family tree charts",
    version="1.0.0"
)

app.include_router(tree.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
