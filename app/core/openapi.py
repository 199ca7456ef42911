"""OpenAPI customization: tag descriptions and rate limit response docs."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Editor",
        "description": "Stage images, generate or edit an image, download the result, inspect the budget.",
    },
    {
        "name": "Health",
        "description": "Liveness check.",
    },
]

_ERROR_SCHEMA = {
    "type": "object",
    "properties": {
        "error": {
            "type": "object",
            "properties": {
                "code": {"type": "string"},
                "message": {"type": "string"},
                "request_id": {"type": "string", "nullable": True},
                "details": {"type": "object"},
            },
            "required": ["code", "message"],
        }
    },
}

# Documented error responses per operation (path, method)
_ERROR_RESPONSES: dict[tuple[str, str], dict[str, str]] = {
    ("/v1/images", "post"): {
        "400": "Too many images, empty file or not an image.",
        "413": "File exceeds the configured size limit.",
    },
    ("/v1/images/{index}", "delete"): {"404": "No staged image at that index."},
    ("/v1/generate", "post"): {
        "400": "Empty prompt.",
        "409": "A generation is already in progress.",
        "429": "Generation limit reached; see Retry-After.",
        "502": "The image service failed or returned no image.",
    },
    ("/v1/generate/latest", "get"): {"404": "Nothing generated yet."},
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with tags and error responses."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        schemas = schema.setdefault("components", {}).setdefault("schemas", {})
        schemas.setdefault("ErrorResponse", _ERROR_SCHEMA)

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        for (path, method), responses in _ERROR_RESPONSES.items():
            operation = paths.get(path, {}).get(method)
            if not isinstance(operation, dict):
                continue
            operation_responses = operation.setdefault("responses", {})
            for status_code, description in responses.items():
                operation_responses.setdefault(
                    status_code,
                    {
                        "description": description,
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/ErrorResponse"}
                            }
                        },
                    },
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
