"""Shared type definitions for mdlive."""

from typing import Literal

# Normalized kind of a filesystem change
type ChangeKind = Literal["write", "rename_or_remove"]

# Payload pushed to live-reload clients
type Payload = str

# Live-reload client identifier
type ClientID = str

# Mode of operation
type MdliveMode = Literal["build", "watch", "serve"]
