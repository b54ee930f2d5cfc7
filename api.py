from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from lexspan.matcher import annotate_passage
from lexspan.patterns import load_patterns
from lexspan.records.normalize import normalize_record


class AnnotateInput(BaseModel):
    paragraphs: List[str]
    lexical_items: List[Dict[str, Any]] = []
    sentiment: Optional[str] = None


class NormalizeInput(BaseModel):
    items: List[Dict[str, Any]]
    batch_index: int = 0


app = FastAPI(title="Lexical Annotation Debug API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/annotate/debug")
def annotate_debug(payload: AnnotateInput) -> dict:
    patterns = load_patterns(payload.lexical_items)
    try:
        passage = annotate_passage(payload.paragraphs, patterns, sentiment=payload.sentiment)
    except Exception as exc:  # pragma: no cover - minimal debug endpoint
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {
        "patterns": len(patterns),
        "paragraphs": [
            [
                {
                    "text": seg.text,
                    "start": seg.start,
                    "end": seg.end,
                    "key": seg.key,
                    "patternId": seg.span.pattern.pattern_id if seg.span else None,
                }
                for seg in segments
            ]
            for segments in passage
        ],
    }


@app.post("/normalize/debug")
def normalize_debug(payload: NormalizeInput) -> dict:
    records = []
    for i, item in enumerate(payload.items):
        try:
            records.append(normalize_record(item, batch_index=payload.batch_index, item_index=i).to_dict())
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=f"Item {i}: {exc}") from exc
    return {"totalItems": len(records), "lexicalItems": records}
