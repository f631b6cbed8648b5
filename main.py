"""
Entry point for the Meadow Endpoints demo server (an in-memory Book scope)
"""

import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from meadow_endpoints import InMemoryDAL, MeadowEndpoints, create_app
from meadow_endpoints.config.settings import PORT

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BOOK_SCHEMA = [
    {"Column": "IDBook", "Type": "AutoIdentity"},
    {"Column": "GUIDBook", "Type": "AutoGUID"},
    {"Column": "CreateDate", "Type": "CreateDate"},
    {"Column": "CreatingIDUser", "Type": "CreateIDUser"},
    {"Column": "UpdateDate", "Type": "UpdateDate"},
    {"Column": "UpdatingIDUser", "Type": "UpdateIDUser"},
    {"Column": "Deleted", "Type": "Deleted"},
    {"Column": "DeleteDate", "Type": "DeleteDate"},
    {"Column": "DeletingIDUser", "Type": "DeleteIDUser"},
    {"Column": "Title", "Type": "String"},
    {"Column": "Type", "Type": "String"},
    {"Column": "PublicationYear", "Type": "Integer"}
]

BOOK_JSON_SCHEMA = {
    "title": "Book",
    "type": "object",
    "properties": {
        "IDBook": {"type": "integer"},
        "Title": {"type": "string"},
        "Type": {"type": "string"},
        "PublicationYear": {"type": "integer"}
    },
    "required": ["Title"]
}

book_endpoints = MeadowEndpoints(
    InMemoryDAL(
        "Book",
        BOOK_SCHEMA,
        json_schema=BOOK_JSON_SCHEMA,
        default_object={"Title": "", "Type": "Paperback", "PublicationYear": 0}
    )
)
book_endpoints.behaviors.set_template("SelectList", "{{ Record.Title }} ({{ Record.PublicationYear }})")

app = create_app(book_endpoints, title="Meadow Endpoints Demo")

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Meadow Endpoints demo on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
