"""Canonical tool definitions for the Live control surface.

This module is the single source of truth for tool names, titles, descriptions
and parameter shapes.  The backend registers the same definitions; the bridge
only consumes them to build an offline fallback catalog for ``tools/list``
when the backend cannot be reached.
"""

from __future__ import annotations

import logging

from dataclasses import dataclass
from typing import Any, Literal

from mcp.types import ListToolsResult, Tool
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Low-level Live API access used for debugging the backend; never advertised offline.
INTERNAL_TOOL_NAME = "ppal-raw-live-api"

EMPTY_INPUT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


# ---------------------------------------------------------------------------
# Parameter shapes
# ---------------------------------------------------------------------------


class _Params(BaseModel):
    model_config = {"extra": "forbid"}


class ReadLiveSetParams(_Params):
    include: list[str] | None = Field(
        default=None,
        description="Extra data to include, e.g. 'tracks', 'scenes', 'clips', 'devices'",
    )


class UpdateLiveSetParams(_Params):
    tempo: float | None = Field(default=None, ge=20, le=999, description="Tempo in BPM")
    timeSignature: str | None = Field(default=None, description="Time signature, e.g. '4/4'")
    scale: str | None = Field(default=None, description="Scale name, e.g. 'C Minor'. Empty string disables the scale")
    arrangementFollower: bool | None = Field(default=None, description="Whether tracks follow the arrangement")


class CreateTrackParams(_Params):
    type: Literal["midi", "audio", "return"] = Field(default="midi", description="Track type")
    trackIndex: int | None = Field(default=None, ge=0, description="Insert position; appended when omitted")
    count: int = Field(default=1, ge=1, le=16, description="Number of tracks to create")
    name: str | None = Field(default=None, description="Track name")
    color: str | None = Field(default=None, description="Color as #RRGGBB")


class ReadTrackParams(_Params):
    trackId: str | None = Field(default=None, description="Track id; takes precedence over trackIndex")
    trackIndex: int | None = Field(default=None, ge=0, description="Track index")
    category: Literal["regular", "return", "master"] = Field(default="regular", description="Track category")
    include: list[str] | None = Field(default=None, description="Extra data to include, e.g. 'clips', 'devices'")


class UpdateTrackParams(_Params):
    ids: str = Field(description="Comma-separated track ids")
    name: str | None = Field(default=None, description="Track name")
    color: str | None = Field(default=None, description="Color as #RRGGBB")
    mute: bool | None = Field(default=None, description="Mute state")
    solo: bool | None = Field(default=None, description="Solo state")
    arm: bool | None = Field(default=None, description="Record-arm state")


class CreateSceneParams(_Params):
    sceneIndex: int | None = Field(default=None, ge=0, description="Insert position; appended when omitted")
    count: int = Field(default=1, ge=1, le=16, description="Number of scenes to create")
    name: str | None = Field(default=None, description="Scene name")
    tempo: float | None = Field(default=None, description="Scene tempo in BPM")


class ReadSceneParams(_Params):
    sceneId: str | None = Field(default=None, description="Scene id; takes precedence over sceneIndex")
    sceneIndex: int | None = Field(default=None, ge=0, description="Scene index")
    include: list[str] | None = Field(default=None, description="Extra data to include, e.g. 'clips'")


class UpdateSceneParams(_Params):
    ids: str = Field(description="Comma-separated scene ids")
    name: str | None = Field(default=None, description="Scene name")
    color: str | None = Field(default=None, description="Color as #RRGGBB")
    tempo: float | None = Field(default=None, description="Scene tempo in BPM")


class CreateClipParams(_Params):
    view: Literal["session", "arrangement"] = Field(description="Where to create the clip")
    trackIndex: int = Field(ge=0, description="Track index")
    sceneIndex: int | None = Field(default=None, ge=0, description="Scene index (session view)")
    arrangementStart: str | None = Field(default=None, description="Start position in bar|beat (arrangement view)")
    length: str | None = Field(default=None, description="Clip length in bar:beat duration")
    notes: str | None = Field(default=None, description="Notes in bar|beat notation")
    name: str | None = Field(default=None, description="Clip name")
    looping: bool | None = Field(default=None, description="Whether the clip loops")


class ReadClipParams(_Params):
    clipId: str | None = Field(default=None, description="Clip id; takes precedence over indexes")
    trackIndex: int | None = Field(default=None, ge=0, description="Track index")
    sceneIndex: int | None = Field(default=None, ge=0, description="Scene index")
    include: list[str] | None = Field(default=None, description="Extra data to include, e.g. 'notes'")


class UpdateClipParams(_Params):
    ids: str = Field(description="Comma-separated clip ids")
    notes: str | None = Field(default=None, description="Notes in bar|beat notation")
    noteUpdateMode: Literal["replace", "merge"] = Field(default="merge", description="How notes are applied")
    name: str | None = Field(default=None, description="Clip name")
    color: str | None = Field(default=None, description="Color as #RRGGBB")
    looping: bool | None = Field(default=None, description="Whether the clip loops")


class ReadDeviceParams(_Params):
    deviceId: str = Field(description="Device id")
    include: list[str] | None = Field(default=None, description="Extra data to include, e.g. 'params'")


class UpdateDeviceParams(_Params):
    ids: str = Field(description="Comma-separated device ids")
    params: dict[str, float] | None = Field(default=None, description="Parameter values keyed by parameter name")
    collapsed: bool | None = Field(default=None, description="Collapse the device view")


class PlaybackParams(_Params):
    action: Literal[
        "play-arrangement",
        "update-arrangement",
        "play-scene",
        "play-session-clips",
        "stop-session-clips",
        "stop-all-session-clips",
        "stop",
    ] = Field(description="Playback action")
    startTime: str | None = Field(default=None, description="Arrangement position in bar|beat")
    sceneIndex: int | None = Field(default=None, ge=0, description="Scene to launch")
    clipIds: str | None = Field(default=None, description="Comma-separated clip ids")


class SelectParams(_Params):
    view: Literal["session", "arrangement"] | None = Field(default=None, description="Main view to show")
    trackId: str | None = Field(default=None, description="Track to select")
    sceneId: str | None = Field(default=None, description="Scene to select")
    clipId: str | None = Field(default=None, description="Clip to select")
    deviceId: str | None = Field(default=None, description="Device to select")


class DeleteParams(_Params):
    ids: str = Field(description="Comma-separated ids of the objects to delete")
    type: Literal["track", "scene", "clip", "device"] = Field(description="Object type")


class DuplicateParams(_Params):
    type: Literal["track", "scene", "clip"] = Field(description="Object type")
    id: str = Field(description="Id of the object to duplicate")
    count: int = Field(default=1, ge=1, le=16, description="Number of copies")
    destination: Literal["session", "arrangement"] | None = Field(default=None, description="Clip destination view")
    arrangementStart: str | None = Field(default=None, description="Arrangement position in bar|beat")


class MemoryParams(_Params):
    action: Literal["read", "write"] = Field(description="Read or write the project notes")
    content: str | None = Field(default=None, description="Notes to store (write)")


class RawLiveApiParams(_Params):
    path: str | None = Field(default=None, description="Live API path, e.g. 'live_set tracks 0'")
    operations: list[dict[str, Any]] = Field(description="Operations to run in order")


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDefinition:
    """One invocable capability of the Live control surface."""

    name: str
    title: str
    description: str
    params: type[BaseModel] | None = None
    small_model_description: str | None = None
    diagnostic: bool = False
    # False: not registered in small-model mode
    small_model: bool = True


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="ppal-connect",
        title="Connect to Ableton Live",
        description=(
            "Connect to Ableton Live and initialize the session. Call this first, "
            "before any other tool, and report the returned status to the user."
        ),
        small_model_description="Connect to Ableton Live. Call this first.",
    ),
    ToolDefinition(
        name="ppal-read-live-set",
        title="Read Live Set",
        description="Read global Live Set settings and, optionally, its tracks, scenes and clips.",
        params=ReadLiveSetParams,
    ),
    ToolDefinition(
        name="ppal-update-live-set",
        title="Update Live Set",
        description="Update global Live Set settings such as tempo, time signature and scale.",
        params=UpdateLiveSetParams,
    ),
    ToolDefinition(
        name="ppal-create-track",
        title="Create Track",
        description="Create one or more MIDI, audio or return tracks.",
        params=CreateTrackParams,
    ),
    ToolDefinition(
        name="ppal-read-track",
        title="Read Track",
        description="Read a track by id or index, optionally including its clips and devices.",
        params=ReadTrackParams,
    ),
    ToolDefinition(
        name="ppal-update-track",
        title="Update Track",
        description="Update name, color, mute, solo or arm state of one or more tracks.",
        params=UpdateTrackParams,
    ),
    ToolDefinition(
        name="ppal-create-scene",
        title="Create Scene",
        description="Create one or more scenes in Session view.",
        params=CreateSceneParams,
    ),
    ToolDefinition(
        name="ppal-read-scene",
        title="Read Scene",
        description="Read a scene by id or index.",
        params=ReadSceneParams,
    ),
    ToolDefinition(
        name="ppal-update-scene",
        title="Update Scene",
        description="Update name, color or tempo of one or more scenes.",
        params=UpdateSceneParams,
    ),
    ToolDefinition(
        name="ppal-create-clip",
        title="Create Clip",
        description=(
            "Create a MIDI clip in Session or Arrangement view. Notes use bar|beat "
            "notation, e.g. '1|1 v100 t0.5 C3 E3 G3'."
        ),
        params=CreateClipParams,
        small_model_description="Create a MIDI clip. Notes use bar|beat notation.",
    ),
    ToolDefinition(
        name="ppal-read-clip",
        title="Read Clip",
        description="Read a clip by id or by track and scene index, optionally including notes.",
        params=ReadClipParams,
    ),
    ToolDefinition(
        name="ppal-update-clip",
        title="Update Clip",
        description="Update notes and properties of one or more clips. Notes are merged unless noteUpdateMode is 'replace'.",
        params=UpdateClipParams,
        small_model_description="Update notes and properties of clips.",
    ),
    ToolDefinition(
        name="ppal-read-device",
        title="Read Device",
        description="Read a device and, optionally, its parameters.",
        params=ReadDeviceParams,
        small_model=False,
    ),
    ToolDefinition(
        name="ppal-update-device",
        title="Update Device",
        description="Update parameter values of one or more devices.",
        params=UpdateDeviceParams,
        small_model=False,
    ),
    ToolDefinition(
        name="ppal-playback",
        title="Playback",
        description="Control playback of the arrangement, scenes and session clips.",
        params=PlaybackParams,
    ),
    ToolDefinition(
        name="ppal-select",
        title="Select",
        description="Change the view and the selected track, scene, clip or device in Live.",
        params=SelectParams,
    ),
    ToolDefinition(
        name="ppal-delete",
        title="Delete",
        description="Delete tracks, scenes, clips or devices by id.",
        params=DeleteParams,
    ),
    ToolDefinition(
        name="ppal-duplicate",
        title="Duplicate",
        description="Duplicate a track, scene or clip.",
        params=DuplicateParams,
    ),
    ToolDefinition(
        name="ppal-memory",
        title="Project Notes",
        description="Read or write persistent notes stored with the Live Set.",
        params=MemoryParams,
        small_model=False,
    ),
    ToolDefinition(
        name=INTERNAL_TOOL_NAME,
        title="Raw Live API",
        description="Run low-level Live API operations. For development and debugging only.",
        params=RawLiveApiParams,
        diagnostic=True,
        small_model=False,
    ),
)


def registered_tools(small_model_mode: bool = False) -> list[ToolDefinition]:
    """Return the definitions the backend registers in the given mode."""
    if not small_model_mode:
        return list(TOOL_DEFINITIONS)
    return [
        ToolDefinition(
            name=defn.name,
            title=defn.title,
            description=defn.small_model_description or defn.description,
            params=defn.params,
            diagnostic=defn.diagnostic,
        )
        for defn in TOOL_DEFINITIONS
        if defn.small_model
    ]


def _strip_titles(schema: Any) -> Any:
    # pydantic adds a "title" to every model and field; MCP clients show them as noise.
    if isinstance(schema, dict):
        return {key: _strip_titles(value) for key, value in schema.items() if key != "title"}
    if isinstance(schema, list):
        return [_strip_titles(item) for item in schema]
    return schema


def input_schema_for(defn: ToolDefinition) -> dict[str, Any]:
    """Convert a definition's parameter shape into a JSON Schema object."""
    if defn.params is None:
        return dict(EMPTY_INPUT_SCHEMA, properties={})
    schema = _strip_titles(defn.params.model_json_schema())
    schema.setdefault("type", "object")
    schema.setdefault("properties", {})
    return schema


def to_mcp_tool(defn: ToolDefinition) -> Tool:
    return Tool(
        name=defn.name,
        title=defn.title,
        description=defn.description,
        inputSchema=input_schema_for(defn),
    )


def build_fallback_catalog(small_model_mode: bool = False) -> ListToolsResult:
    """Build a complete ``tools/list`` result without touching the network.

    Every registered tool is included except the internal diagnostic tool.
    """
    tools = [to_mcp_tool(defn) for defn in registered_tools(small_model_mode) if not defn.diagnostic]
    logger.debug("Built fallback catalog with %d tools (small_model_mode=%s)", len(tools), small_model_mode)
    return ListToolsResult(tools=tools)
