"""
Response marshaller - turns records into the wire response
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse

logger = logging.getLogger(__name__)

SELECT_LIST_TEMPLATE = "SelectList"


async def _record_array_chunks(encoded: List[str]) -> AsyncIterator[str]:
    yield "["
    for index, record in enumerate(encoded):
        if index > 0:
            yield ","
        yield record
    yield "]"


def stream_records_to_response(records: Optional[List[Dict[str, Any]]]) -> StreamingResponse:
    """
    Stream a record array as a JSON array, one record per chunk

    Records are encoded before the response is built, so an unencodable
    record raises here rather than part way through the body.
    """
    encoded = [json.dumps(jsonable_encoder(record)) for record in records or []]
    return StreamingResponse(_record_array_chunks(encoded), media_type="application/json")


def send_records(records: Optional[List[Dict[str, Any]]]) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(list(records or [])))


def send_record(record: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(record))


def default_template_fallback(context) -> str:
    """Select list text when no SelectList template is registered: 'Book #12'"""
    return f"{context.dal.scope} #{{{{ Record.{context.dal.default_identifier} }}}}"


def marshal_lite_list(context) -> List[Dict[str, Any]]:
    """
    Reduce ``context.records`` to lite records (for drop-downs and such)

    Each lite record carries the rendered ``Value``, the default
    identifier, the GUID column, ``UpdateDate`` when the records have one,
    and every column named ``ID...`` or ``GUID...``.
    """
    records = context.records or []
    dal = context.dal
    guid_column = dal.default_guid_identifier or None

    # Peek at the first record for the shape of the set
    has_update_date = len(records) > 0 and "UpdateDate" in records[0]
    id_columns = []
    if records:
        id_columns = [field for field in records[0].keys() if field.startswith("ID") or field.startswith("GUID")]

    fallback = default_template_fallback(context)
    lite_list = []
    for record in records:
        lite_record = {
            "Value": context.behaviors.process_template(SELECT_LIST_TEMPLATE, {"Record": record}, fallback),
            dal.default_identifier: record.get(dal.default_identifier)
        }
        if guid_column:
            lite_record[guid_column] = record.get(guid_column)
        if has_update_date:
            lite_record["UpdateDate"] = record.get("UpdateDate")
        for field in id_columns:
            lite_record[field] = record.get(field)
        lite_list.append(lite_record)

    return lite_list


def marshal_select_list(context) -> List[Dict[str, Any]]:
    """Reduce ``context.records`` to ``{Hash, Value}`` pairs"""
    dal = context.dal
    fallback = default_template_fallback(context)
    return [
        {
            "Hash": record.get(dal.default_identifier),
            "Value": context.behaviors.process_template(SELECT_LIST_TEMPLATE, {"Record": record}, fallback)
        }
        for record in context.records or []
    ]


def marshal_distinct_list(records: Optional[List[Dict[str, Any]]], columns: List[str]) -> List[Dict[str, Any]]:
    """Project records onto ``columns`` and drop repeated rows, keeping first-seen order"""
    distinct = []
    seen = set()
    for record in records or []:
        row = {column: record.get(column) for column in columns}
        key = json.dumps(jsonable_encoder(row), sort_keys=True)
        if key in seen:
            continue
        seen.add(key)
        distinct.append(row)
    return distinct
