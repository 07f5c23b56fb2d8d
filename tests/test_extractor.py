"""Tests for reading the host application's OpenAPI document."""

from fastapi import FastAPI

from graphql_bridge.extractor import DocumentExtractor, deep_merge


def build_app():
    app = FastAPI(title="Host", version="9.9")

    @app.get("/generated/{id}")
    async def generated(id: str):
        return {"id": id}

    @app.get("/named", operation_id="named")
    async def named():
        return {}

    @app.get("/extra", openapi_extra={"operationId": "fromExtra"})
    async def extra():
        return {}

    return app


def ready_extractor(app, **kwargs):
    extractor = DocumentExtractor(app, **kwargs)
    extractor.mark_ready()
    return extractor


def test_generated_operation_ids_are_stripped():
    paths = ready_extractor(build_app()).current_document()["paths"]

    assert "operationId" not in paths["/generated/{id}"]["get"]
    assert paths["/named"]["get"]["operationId"] == "named"
    assert paths["/extra"]["get"]["operationId"] == "fromExtra"


def test_generated_operation_ids_can_be_kept():
    paths = ready_extractor(build_app(), keep_generated_operation_ids=True).current_document()["paths"]
    assert paths["/generated/{id}"]["get"]["operationId"]


def test_definitions_are_merged_over_the_document():
    definitions = {
        "info": {"title": "Test swagger", "description": "merged"},
        "components": {"securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer"}}},
    }
    document = ready_extractor(build_app(), definitions=definitions).current_document()

    assert document["info"] == {"title": "Test swagger", "version": "9.9", "description": "merged"}
    assert "bearerAuth" in document["components"]["securitySchemes"]
    assert "HTTPValidationError" in document["components"]["schemas"]


def test_document_is_a_copy():
    app = build_app()
    extractor = ready_extractor(app)

    extractor.current_document()["paths"].clear()

    assert extractor.current_document()["paths"]
    assert app.openapi()["paths"]["/named"]["get"]["operationId"] == "named"


def test_deep_merge():
    base = {"a": {"b": 1, "c": [1]}, "d": 1}
    merged = deep_merge(base, {"a": {"c": [2]}, "e": 2})

    assert merged == {"a": {"b": 1, "c": [2]}, "d": 1, "e": 2}
    assert base == {"a": {"b": 1, "c": [1]}, "d": 1}
