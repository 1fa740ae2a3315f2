"""
Data models for the Cache Service.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExplorerDatabase(str, Enum):
    """Opening explorer databases."""
    MASTERS = "masters"
    LICHESS = "lichess"


class ExplorerMove(BaseModel):
    """Move statistics from a position."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    uci: str = Field(..., description="Move in UCI notation")
    san: str = Field(..., description="Move in SAN notation")
    white: int = Field(..., description="White wins after this move")
    draws: int = Field(..., description="Draws after this move")
    black: int = Field(..., description="Black wins after this move")
    average_rating: Optional[int] = Field(None, alias="averageRating", description="Average rating of players")


class ExplorerPlayer(BaseModel):
    """Player in a reference game."""
    name: str
    rating: int


class ExplorerGame(BaseModel):
    """Reference game reaching a position."""
    model_config = ConfigDict(extra="allow")

    id: str
    winner: Optional[Literal["white", "black"]] = Field(None, description="Absent for a draw")
    white: ExplorerPlayer
    black: ExplorerPlayer
    year: Optional[int] = None


class ExplorerOpening(BaseModel):
    """Opening classification."""
    eco: str
    name: str


class ExplorerResponse(BaseModel):
    """Opening explorer payload for one position."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    white: int = Field(..., description="White wins count")
    draws: int = Field(..., description="Draws count")
    black: int = Field(..., description="Black wins count")
    moves: List[ExplorerMove] = Field(default_factory=list)
    top_games: Optional[List[ExplorerGame]] = Field(None, alias="topGames")
    opening: Optional[ExplorerOpening] = None


class CacheStats(BaseModel):
    """Cache statistics."""
    connected: bool
    key_count: int
    memory_usage: str


class ExplorerCacheStats(BaseModel):
    """Opening explorer cache statistics."""
    count_by_variant: Dict[str, int]
    total_count: int


class ExplorerCacheInfo(BaseModel):
    """Cache details for one position."""
    exists: bool
    ttl: int
    data: Optional[ExplorerResponse] = None


class SetCacheRequest(BaseModel):
    """Request model for storing a value."""
    key: str = Field(..., min_length=1, description="Cache key")
    value: Dict[str, Any] = Field(..., description="Value to cache (will be JSON serialized)")
    ttl: Optional[int] = Field(None, ge=1, description="TTL in seconds")


class ExplorerSetRequest(BaseModel):
    """Request model for caching explorer data."""
    fen: str = Field(..., description="FEN string of the position")
    database: ExplorerDatabase = Field(..., description="Database type")
    data: ExplorerResponse = Field(..., description="Explorer response data")
