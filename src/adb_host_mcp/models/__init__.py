"""Data models for devices, endpoints, forwards, log entries and framebuffers."""

from .device import Device, DeviceState
from .endpoint import Endpoint
from .forward import ForwardProtocol, ForwardRule, ForwardSpec
from .framebuffer import Framebuffer, FramebufferHeader
from .log_entry import AndroidLogEntry, LogEntry, LogId, LogPriority
