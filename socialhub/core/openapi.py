"""OpenAPI customization for the service apps.

Adds the two header-based security schemes the services understand:
- ``UserIdAuth``: the gateway-injected user id header on user routes
- ``AdminApiKey``: the ``X-API-Key`` header on identity admin routes

Health stays unauthenticated.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from socialhub.core.config import settings

_TAG_DESCRIPTIONS = {
    "Health": "Liveness and broker connectivity.",
    "Posts": "Create, list, read and delete posts.",
    "Media": "Media metadata of uploaded files.",
    "Search": "Full-text search over indexed posts.",
    "Admin": "Identity administration (requires X-API-Key).",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to document header auth and tags."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "UserIdAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": settings.app.user_id_header,
                "description": "Authenticated user id, set by the API gateway.",
            },
        )
        security_schemes.setdefault(
            "AdminApiKey",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Admin API key for identity administration.",
            },
        )

        used_tags: set[str] = set()
        paths = schema.get("paths", {})
        for path, methods in paths.items():
            if path.endswith("/health"):
                requirement: list = []
            elif path.startswith("/api/admin"):
                requirement = [{"AdminApiKey": []}]
            else:
                requirement = [{"UserIdAuth": []}]
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = requirement
                    used_tags.update(method_obj.get("tags", []))

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for name, description in _TAG_DESCRIPTIONS.items():
            if name in used_tags and name not in existing_tag_names:
                tags.append({"name": name, "description": description})

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
