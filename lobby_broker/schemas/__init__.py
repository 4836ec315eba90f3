"""
lobby_broker.schemas
~~~~~~~~~~~~~~~~~~~~
Pydantic schemas for the WebSocket protocol and the HTTP endpoints.
"""
from lobby_broker.schemas.api_response import ApiResponse
from lobby_broker.schemas.status import LobbyStatusData, RoomSummaryData

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
