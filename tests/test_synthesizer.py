"""Tests for schema synthesis from OpenAPI documents."""

import copy

import pytest
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from graphql import graphql, print_schema
from pydantic import BaseModel

from graphql_bridge.dispatch import InProcessRequestAdapter
from graphql_bridge.errors import SynthesisError
from graphql_bridge.synthesizer import PLACEHOLDER_FIELD, synthesize


def json_response(schema):
    return {"description": "ok", "content": {"application/json": {"schema": schema}}}


PETSTORE = {
    "openapi": "3.0.0",
    "info": {"title": "Pets", "version": "1.0"},
    "paths": {
        "/pets": {
            "get": {
                "operationId": "listPets",
                "parameters": [
                    {"name": "limit", "in": "query", "schema": {"type": "integer"}},
                    {"name": "tags", "in": "query", "schema": {"type": "array", "items": {"type": "string"}}},
                ],
                "responses": {
                    "200": json_response({"type": "array", "items": {"$ref": "#/components/schemas/Pet"}})
                },
            },
            "post": {
                "operationId": "createPet",
                "tags": ["pets"],
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/NewPet"}}},
                },
                "responses": {"201": json_response({"$ref": "#/components/schemas/Pet"})},
            },
        },
        "/pets/{petId}": {
            "get": {
                "operationId": "showPetById",
                "parameters": [{"name": "petId", "in": "path", "required": True, "schema": {"type": "string"}}],
                "responses": {"200": json_response({"$ref": "#/components/schemas/Pet"})},
            },
            "delete": {
                "parameters": [{"name": "petId", "in": "path", "required": True, "schema": {"type": "string"}}],
                "responses": {"204": {"description": "deleted"}},
            },
        },
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "string"},
                    "tag": {"type": "string"},
                },
            },
            "NewPet": {
                "type": "object",
                "required": ["name"],
                "properties": {"name": {"type": "string"}, "tag": {"type": "string"}},
            },
        }
    },
}


def test_queries_and_mutations_are_split(stub_adapter):
    schema = synthesize(PETSTORE, stub_adapter({})).schema

    assert set(schema.query_type.fields) == {"listPets", "showPetById", "viewer"}
    assert set(schema.mutation_type.fields) == {"createPet", "deletePetsPetId"}


def test_arguments(stub_adapter):
    schema = synthesize(PETSTORE, stub_adapter({})).schema
    query, mutation = schema.query_type.fields, schema.mutation_type.fields

    assert str(query["showPetById"].args["petId"].type) == "String!"
    assert str(query["listPets"].args["limit"].type) == "Int"
    assert str(query["listPets"].args["tags"].type) == "[String]"
    assert str(mutation["createPet"].args["createPetInput"].type) == "NewPetInput!"


def test_output_types_are_deduplicated_and_nullable(stub_adapter):
    schema = synthesize(PETSTORE, stub_adapter({})).schema
    query, mutation = schema.query_type.fields, schema.mutation_type.fields

    pet = query["showPetById"].type
    assert query["listPets"].type.of_type is pet
    assert mutation["createPet"].type is pet
    assert str(pet.fields["id"].type) == "Int"
    assert str(mutation["deletePetsPetId"].type) == "JSON"


def test_synthesis_is_deterministic(stub_adapter):
    first = synthesize(copy.deepcopy(PETSTORE), stub_adapter({})).schema
    second = synthesize(copy.deepcopy(PETSTORE), stub_adapter({})).schema

    assert print_schema(first) == print_schema(second)


def test_field_name_collisions_get_suffixes(stub_adapter):
    document = {
        "openapi": "3.0.0",
        "info": {"title": "t", "version": "1"},
        "paths": {
            "/a-b": {"get": {"responses": {"200": json_response({"type": "string"})}}},
            "/a_b": {"get": {"responses": {"200": json_response({"type": "string"})}}},
        },
    }
    result = synthesize(document, stub_adapter({}), viewer=False)

    assert list(result.schema.query_type.fields) == ["getAB", "getAB2"]
    assert result.field_names == {"GET /a-b": "getAB", "GET /a_b": "getAB2"}


def test_empty_document_gets_placeholder(stub_adapter):
    document = {"openapi": "3.0.0", "info": {"title": "t", "version": "1"}, "paths": {}}
    schema = synthesize(document, stub_adapter({}), viewer=False).schema

    assert list(schema.query_type.fields) == [PLACEHOLDER_FIELD]
    assert schema.mutation_type is None


def test_only_mutations_still_have_a_query_type(stub_adapter):
    document = {
        "openapi": "3.0.0",
        "info": {"title": "t", "version": "1"},
        "paths": {"/x": {"post": {"responses": {"200": json_response({"type": "string"})}}}},
    }
    schema = synthesize(document, stub_adapter({}), viewer=False).schema

    assert list(schema.query_type.fields) == [PLACEHOLDER_FIELD]
    assert list(schema.mutation_type.fields) == ["postX"]


def test_unusable_operations_fail(stub_adapter):
    document = {"openapi": "3.0.0", "info": {"title": "t", "version": "1"}, "paths": {"/x": {"get": "nope"}}}
    with pytest.raises(SynthesisError):
        synthesize(document, stub_adapter({}))


def test_duplicate_operation_ids_fail(stub_adapter):
    document = copy.deepcopy(PETSTORE)
    document["paths"]["/pets/{petId}"]["delete"]["operationId"] = "listPets"
    with pytest.raises(SynthesisError, match="Duplicate operationId"):
        synthesize(document, stub_adapter({}))


def test_unresolvable_refs_fail(stub_adapter):
    document = copy.deepcopy(PETSTORE)
    document["components"]["schemas"]["Pet"]["properties"]["owner"] = {"$ref": "#/components/schemas/Owner"}
    with pytest.raises(SynthesisError):
        synthesize(document, stub_adapter({}))


def test_viewer_collision_is_reported(stub_adapter):
    document = copy.deepcopy(PETSTORE)
    document["paths"]["/pets"]["get"]["operationId"] = "viewer"
    result = synthesize(document, stub_adapter({}))

    assert result.schema.query_type.fields["viewer"].type.of_type.name == "Pet"
    assert any("viewer" in message for message in result.diagnostics)


@pytest.mark.asyncio
async def test_viewer_describes_operations(stub_adapter):
    schema = synthesize(PETSTORE, stub_adapter({})).schema
    result = await graphql(schema, "{ viewer { title version operations { field kind method path tags } } }")

    assert result.errors is None
    viewer = result.data["viewer"]
    assert viewer["title"] == "Pets"
    assert {"field": "createPet", "kind": "mutation", "method": "POST", "path": "/pets", "tags": ["pets"]} in viewer["operations"]
    assert len(viewer["operations"]) == 4


@pytest.mark.asyncio
async def test_resolvers_dispatch_calls(stub_adapter):
    adapter = stub_adapter(
        {
            ("GET", "/pets"): (200, [{"id": 1, "name": "rex"}, {"id": 2, "name": "tom", "tag": "cat"}]),
            ("POST", "/pets"): (201, {"id": 3, "name": "kit"}),
        }
    )
    schema = synthesize(PETSTORE, adapter).schema

    listed = await graphql(schema, '{ listPets(limit: 2, tags: ["a", "b"]) { id name tag } }')
    created = await graphql(schema, 'mutation { createPet(createPetInput: {name: "kit"}) { id name } }')

    assert listed.errors is None
    assert listed.data == {"listPets": [{"id": 1, "name": "rex", "tag": None}, {"id": 2, "name": "tom", "tag": "cat"}]}
    assert created.data == {"createPet": {"id": 3, "name": "kit"}}
    assert adapter.calls[0].url == "/pets?limit=2&tags=a&tags=b"
    assert adapter.calls[1].body == b'{"name": "kit"}'


@pytest.mark.asyncio
async def test_non_2xx_becomes_field_error(stub_adapter):
    adapter = stub_adapter({("GET", "/pets"): (200, [])})
    schema = synthesize(PETSTORE, adapter).schema

    result = await graphql(schema, '{ listPets { id } showPetById(petId: "9") { id } }')

    assert result.data == {"listPets": [], "showPetById": None}
    assert len(result.errors) == 1
    error = result.errors[0].formatted
    assert error["path"] == ["showPetById"]
    assert error["extensions"]["code"] == "DISPATCH_ERROR"
    assert error["extensions"]["statusCode"] == 404
    assert error["extensions"]["responseBody"] == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_server_errors_hide_response_body(stub_adapter):
    adapter = stub_adapter({("GET", "/pets/1"): (500, {"trace": "secret"})})
    schema = synthesize(PETSTORE, adapter).schema

    result = await graphql(schema, '{ showPetById(petId: "1") { id } }')

    extensions = result.errors[0].formatted["extensions"]
    assert extensions["statusCode"] == 500
    assert "responseBody" not in extensions


class Thing(BaseModel):
    name: str


@pytest.mark.asyncio
async def test_text_body_for_object_field_is_an_error():
    app = FastAPI()

    @app.get("/thing", response_model=Thing, operation_id="getThing")
    async def get_thing():
        return PlainTextResponse("not json at all")

    @app.get("/motd", response_class=PlainTextResponse, operation_id="getMotd")
    async def get_motd():
        return "hello"

    schema = synthesize(app.openapi(), InProcessRequestAdapter(app)).schema

    result = await graphql(schema, "{ getThing { name } getMotd }")

    assert result.data == {"getThing": None, "getMotd": "hello"}
    assert len(result.errors) == 1
    assert result.errors[0].path == ["getThing"]
    extensions = result.errors[0].formatted["extensions"]
    assert extensions["code"] == "RESPONSE_DECODE_ERROR"
    assert extensions["statusCode"] == 200
