"""
Mock Microsoft Graph server providing user open extension endpoints.
"""

from typing import Any, Dict

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from shared.logging import get_logger


class MockGraphServer:
    """In-memory Graph open extensions, keyed by user and extension id."""

    def __init__(self, port: int = 8090):
        self.port = port
        self.logger = get_logger("mock.graph")
        self.app = FastAPI(title="Mock Microsoft Graph", version="1.0.0")
        self.base_url = f"http://localhost:{port}/v1.0"

        # user_id -> extension_id -> properties
        self.extensions: Dict[str, Dict[str, Dict[str, Any]]] = {}
        # Remaining requests to answer with 503, for failure scenarios
        self.fail_requests = 0

        self._setup_routes()

    def _error(self, status_code: int, code: str, message: str) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})

    def _document(self, user_id: str, extension_id: str) -> Dict[str, Any]:
        return {
            "@odata.context": f"{self.base_url}/$metadata#users('{user_id}')/extensions/$entity",
            "@odata.type": "#microsoft.graph.openTypeExtension",
            "id": extension_id,
            "extensionName": extension_id,
            **self.extensions[user_id][extension_id],
        }

    def _setup_routes(self):
        """Set up mock Graph routes."""

        @self.app.middleware("http")
        async def inject_failures(request: Request, call_next):
            if self.fail_requests > 0:
                self.fail_requests -= 1
                return self._error(503, "serviceNotAvailable", "Mock outage")
            return await call_next(request)

        @self.app.get("/v1.0/users/{user_id}/extensions/{extension_id}")
        async def get_extension(user_id: str, extension_id: str):
            if extension_id not in self.extensions.get(user_id, {}):
                return self._error(404, "ResourceNotFound", f"Extension {extension_id} not found")
            return self._document(user_id, extension_id)

        @self.app.post("/v1.0/users/{user_id}/extensions", status_code=201)
        async def create_extension(user_id: str, request: Request):
            body = await request.json()
            extension_id = body.get("extensionName")
            if not extension_id:
                return self._error(400, "BadRequest", "extensionName is required")

            user_extensions = self.extensions.setdefault(user_id, {})
            if extension_id in user_extensions:
                return self._error(409, "NameAlreadyExists", f"Extension {extension_id} already exists")

            user_extensions[extension_id] = {
                key: value for key, value in body.items()
                if key not in ("@odata.type", "extensionName")
            }
            self.logger.info("Created extension", user_id=user_id, extension_id=extension_id)
            return self._document(user_id, extension_id)

        @self.app.patch("/v1.0/users/{user_id}/extensions/{extension_id}")
        async def update_extension(user_id: str, extension_id: str, request: Request):
            if extension_id not in self.extensions.get(user_id, {}):
                return self._error(404, "ResourceNotFound", f"Extension {extension_id} not found")

            body = await request.json()
            body.pop("@odata.type", None)
            self.extensions[user_id][extension_id].update(body)
            return Response(status_code=204)

        @self.app.delete("/v1.0/users/{user_id}/extensions/{extension_id}")
        async def delete_extension(user_id: str, extension_id: str):
            if extension_id not in self.extensions.get(user_id, {}):
                return self._error(404, "ResourceNotFound", f"Extension {extension_id} not found")

            del self.extensions[user_id][extension_id]
            self.logger.info("Deleted extension", user_id=user_id, extension_id=extension_id)
            return Response(status_code=204)


def create_app():
    """Create mock Graph application."""
    server = MockGraphServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8090)
