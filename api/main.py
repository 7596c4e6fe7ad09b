"""
FastAPI API for the Jupiter document engine
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List

from jupiter import ConfigurationError, DataLoadError, JupiterError, JupiterPipeline, QCEngine, __version__
from jupiter.fact_map import FactAccessors, FactSpec, FactKey, load_fact_map
from jupiter.loader import Dataset
from jupiter.lookups import Lookups
from jupiter.payments import nickname_grantor
from jupiter.settings import configure_logging

configure_logging()

# Initialize FastAPI app
app = FastAPI(
    title="Jupiter Document Engine API",
    description="API for computing term dates, payment schedules and QC flags from extracted agreement facts",
    version=__version__
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configuration is loaded once (singleton); lookups are per request
_fact_map: Optional[Dict[FactKey, FactSpec]] = None
_qc_engine: Optional[QCEngine] = None


def get_engine() -> QCEngine:
    """Get or create the QC engine instance"""
    global _qc_engine
    if _qc_engine is None:
        _qc_engine = QCEngine()
    return _qc_engine


def get_fact_map() -> Dict[FactKey, FactSpec]:
    """Get or load the fact map"""
    global _fact_map
    if _fact_map is None:
        _fact_map = load_fact_map()
    return _fact_map


# Request/Response Models
class ProcessRequest(BaseModel):
    """Request model for processing a document set"""
    documents: List[Dict[str, Any]] = Field(..., description="Raw documents with their extracted facts")
    fact_types: List[Dict[str, Any]] = Field(..., alias="factTypes", description="Fact type definitions")
    doc_types: List[Dict[str, Any]] = Field(default_factory=list, alias="docTypes", description="Document types")
    tags: List[Dict[str, Any]] = Field(default_factory=list, description="Tags")
    doc_id: Optional[str] = Field(None, alias="docId", description="Only return this document")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "documents": [
                    {
                        "id": "doc-1",
                        "name": "Smith Lease",
                        "documentTypeId": "dt-lease",
                        "tagIds": [],
                        "facts": [
                            {
                                "id": "f-1",
                                "factTypeId": "ft-effective",
                                "fields": [{"factFieldTypeId": "fld-effective", "dataType": "Date",
                                            "dateValue": "2024-01-01"}]
                            }
                        ]
                    }
                ],
                "factTypes": [
                    {"id": "ft-effective", "name": "Effective Date",
                     "fieldTypes": [{"id": "fld-effective", "name": "Effective Date", "dataType": "Date"}]}
                ],
                "docTypes": [{"id": "dt-lease", "name": "Lease"}],
                "tags": []
            }
        }


class NicknameRequest(BaseModel):
    """Request model for grantor nicknames"""
    name: str = Field(..., description="Full grantor name")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "John Smith and Jane Smith"
            }
        }


# API Endpoints
@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Jupiter Document Engine API",
        "version": __version__,
        "endpoints": {
            "POST /process": "Compute term dates, payments and QC flags for a set of documents",
            "POST /nickname": "Short display name for a grantor",
            "GET /health": "Health check"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    try:
        engine = get_engine()
        fact_map = get_fact_map()
        return {
            "status": "healthy",
            "qc_rules_loaded": len(engine.rules),
            "fact_keys_loaded": len(fact_map)
        }
    except JupiterError as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }


@app.post("/process", response_model=Dict[str, Any])
async def process_documents(request: ProcessRequest):
    """
    Process a set of pre-fetched documents.

    This endpoint:
    1. Builds normalized documents from the raw facts
    2. Computes term dates and payment schedules
    3. Merges amendments and deeds into their base documents
    4. Runs the QC rules
    """
    try:
        dataset = Dataset.from_collections(request.documents, request.fact_types, request.doc_types, request.tags)
        lookups = Lookups.from_dataset(dataset)
        pipeline = JupiterPipeline(lookups, FactAccessors(get_fact_map(), lookups), get_engine())
        docs = pipeline.run(dataset.documents)

        if request.doc_id:
            docs = [d for d in docs if d.id == request.doc_id]
            if not docs:
                raise HTTPException(
                    status_code=404,
                    detail={
                        "error": "DocumentNotFound",
                        "message": f"Document '{request.doc_id}' not found",
                        "type": "document_not_found"
                    }
                )

        return {
            "count": len(docs),
            "documents": [d.to_dict() for d in docs]
        }

    except DataLoadError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "DataLoadError",
                "message": str(e),
                "type": "invalid_collections"
            }
        )
    except ConfigurationError as e:
        raise HTTPException(
            status_code=500,
            detail={
                "error": "ConfigurationError",
                "message": str(e),
                "type": "configuration_error"
            }
        )


@app.post("/nickname")
async def nickname(request: NicknameRequest):
    """Short display name for a grantor, as used for payees"""
    return {
        "input": request.name,
        "nickname": nickname_grantor(request.name)
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
