from pydantic import BaseModel


class ScrollResult(BaseModel):
    """One page of points, or all points of a tenant collected by do_scroll_all().

    Attributes:
        result:           Point dicts as returned by the backend.
        status:           Backend status string (e.g. "ok").
        time:             Time taken by the backend to execute the request.
        next_page_offset: Cursor for the next page, None when exhausted.
    """

    result: list[dict]
    status: str = "ok"
    time: float = 0
    next_page_offset: str | int | None = None

    def document_ids(self) -> set[str]:
        """Distinct document ids found in the point payloads."""
        ids: set[str] = set()
        for point in self.result:
            doc_id = (point.get("payload") or {}).get("document_id")
            if doc_id is not None:
                ids.add(str(doc_id))
        return ids
