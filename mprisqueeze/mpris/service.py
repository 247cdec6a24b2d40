"""
D-Bus binding of the MPRIS interfaces.

The object at /org/mpris/MediaPlayer2 implements:
- org.mpris.MediaPlayer2 (static answers)
- org.mpris.MediaPlayer2.Player (delegated to MprisPlayer)
- org.freedesktop.DBus.Properties (Get, GetAll, Set, PropertiesChanged)

Threading model:
    dbus-python dispatches calls from a GLib main loop. That loop runs in a
    daemon thread while asyncio owns the main thread. Player calls use
    dbus-python's asynchronous callbacks: the handler schedules a coroutine
    on the asyncio loop with run_coroutine_threadsafe and returns at once,
    so several bus calls can wait on LMS at the same time. When the
    coroutine finishes, the reply (or error) is handed back to the GLib
    thread with GLib.idle_add.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine
from concurrent.futures import Future
from enum import Enum
from typing import Any

import dbus
import dbus.exceptions
import dbus.mainloop.glib
import dbus.service
from gi.repository import GLib

from mprisqueeze.errors import RpcError, ServiceError
from mprisqueeze.models import MPRIS_OBJECT_PATH, PlayerIdentity
from mprisqueeze.mpris.player import MprisPlayer

logger = logging.getLogger(__name__)

ROOT_INTERFACE = "org.mpris.MediaPlayer2"
PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"
PROPERTIES_INTERFACE = dbus.PROPERTIES_IFACE

ASYNC_CALLBACKS = ("reply_handler", "error_handler")

# How long stop() waits for the GLib thread
THREAD_JOIN_TIMEOUT = 2.0


class FailedError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.Failed"


class UnknownInterfaceError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.UnknownInterface"


class UnknownPropertyError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.UnknownProperty"


class PropertyReadOnlyError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.PropertyReadOnly"


class InvalidArgsError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.InvalidArgs"


def error_for(exc: BaseException) -> dbus.exceptions.DBusException:
    """Translate an exception from the player layer into a D-Bus error."""
    if isinstance(exc, KeyError):
        return UnknownPropertyError(f"No such property: {exc.args[0] if exc.args else ''}")
    if isinstance(exc, PermissionError):
        return PropertyReadOnlyError(f"Property is read-only: {exc.args[0] if exc.args else ''}")
    if isinstance(exc, ValueError):
        return InvalidArgsError(str(exc))
    return FailedError(str(exc) or type(exc).__name__)


# =============================================================================
# Python -> D-Bus values
# =============================================================================


def _string(value: Any) -> dbus.String:
    if isinstance(value, Enum):
        value = value.value
    return dbus.String(value)


def metadata_to_dbus(metadata: dict[str, Any]) -> dbus.Dictionary:
    """Convert MPRIS metadata into an a{sv} with the types MPRIS mandates."""
    out: dict[str, Any] = {}
    for key, value in metadata.items():
        if key == "mpris:trackid":
            out[key] = dbus.ObjectPath(value)
        elif key == "mpris:length":
            out[key] = dbus.Int64(value)
        elif isinstance(value, list):
            out[key] = dbus.Array([str(v) for v in value], signature="s")
        else:
            out[key] = dbus.String(value)
    return dbus.Dictionary(out, signature="sv")


PLAYER_PROPERTY_TYPES: dict[str, Callable[[Any], Any]] = {
    "PlaybackStatus": _string,
    "LoopStatus": _string,
    "Rate": dbus.Double,
    "Shuffle": dbus.Boolean,
    "Metadata": metadata_to_dbus,
    "Volume": dbus.Double,
    "Position": dbus.Int64,
    "MinimumRate": dbus.Double,
    "MaximumRate": dbus.Double,
    "CanGoNext": dbus.Boolean,
    "CanGoPrevious": dbus.Boolean,
    "CanPlay": dbus.Boolean,
    "CanPause": dbus.Boolean,
    "CanSeek": dbus.Boolean,
    "CanControl": dbus.Boolean,
}


def player_property_to_dbus(name: str, value: Any) -> Any:
    return PLAYER_PROPERTY_TYPES[name](value)


def player_properties_to_dbus(properties: dict[str, Any]) -> dbus.Dictionary:
    return dbus.Dictionary(
        {name: player_property_to_dbus(name, value) for name, value in properties.items()},
        signature="sv",
    )


def root_properties(identity: PlayerIdentity) -> dbus.Dictionary:
    """Properties of org.mpris.MediaPlayer2; they never change."""
    return dbus.Dictionary(
        {
            "CanQuit": dbus.Boolean(False),
            "CanRaise": dbus.Boolean(False),
            "HasTrackList": dbus.Boolean(False),
            "Identity": dbus.String(f"Squeezelite ({identity.name})"),
            "SupportedUriSchemes": dbus.Array([], signature="s"),
            "SupportedMimeTypes": dbus.Array([], signature="s"),
        },
        signature="sv",
    )


def _call_once(function: Callable[..., Any], *args: Any) -> bool:
    function(*args)
    # GLib.idle_add repeats the callback while it returns True
    return False


# =============================================================================
# Exported object
# =============================================================================


class MprisObject(dbus.service.Object):
    """The /org/mpris/MediaPlayer2 object."""

    def __init__(
        self,
        conn: dbus.connection.Connection | None,
        player: MprisPlayer,
        identity: PlayerIdentity,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        # Without a connection the object is created but not exported
        super().__init__(conn, MPRIS_OBJECT_PATH if conn is not None else None)
        self.player = player
        self.identity = identity
        self._loop = loop
        self._root_properties = root_properties(identity)

    def _reply(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run a reply/error callback on the GLib thread."""
        GLib.idle_add(_call_once, callback, *args)

    def _dispatch(
        self,
        description: str,
        coro: Coroutine[Any, Any, Any],
        reply_handler: Callable[..., None],
        error_handler: Callable[[Exception], None],
        convert: Callable[[Any], Any] | None = None,
    ) -> None:
        """
        Run `coro` on the asyncio loop and answer the bus call when it ends.

        Each call is independent: a failing call only fails its own reply.
        """
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)

        def done(fut: Future[Any]) -> None:
            try:
                result = fut.result()
                reply = () if convert is None else (convert(result),)
            except RpcError as e:
                logger.warning("%s failed: %s", description, e)
                self._reply(error_handler, FailedError(str(e)))
            except Exception as e:
                logger.warning("%s failed: %r", description, e)
                self._reply(error_handler, error_for(e))
            else:
                self._reply(reply_handler, *reply)

        future.add_done_callback(done)

    # -------------------------------------------------------------------------
    # org.mpris.MediaPlayer2
    # -------------------------------------------------------------------------

    @dbus.service.method(ROOT_INTERFACE)
    def Raise(self) -> None:
        logger.debug("MprisObject.Raise")

    @dbus.service.method(ROOT_INTERFACE)
    def Quit(self) -> None:
        logger.debug("MprisObject.Quit")

    # -------------------------------------------------------------------------
    # org.mpris.MediaPlayer2.Player
    # -------------------------------------------------------------------------

    @dbus.service.method(PLAYER_INTERFACE, async_callbacks=ASYNC_CALLBACKS)
    def Next(self, reply_handler, error_handler):
        self._dispatch("Next", self.player.next(), reply_handler, error_handler)

    @dbus.service.method(PLAYER_INTERFACE, async_callbacks=ASYNC_CALLBACKS)
    def Previous(self, reply_handler, error_handler):
        self._dispatch("Previous", self.player.previous(), reply_handler, error_handler)

    @dbus.service.method(PLAYER_INTERFACE, async_callbacks=ASYNC_CALLBACKS)
    def Pause(self, reply_handler, error_handler):
        self._dispatch("Pause", self.player.pause(), reply_handler, error_handler)

    @dbus.service.method(PLAYER_INTERFACE, async_callbacks=ASYNC_CALLBACKS)
    def PlayPause(self, reply_handler, error_handler):
        self._dispatch("PlayPause", self.player.play_pause(), reply_handler, error_handler)

    @dbus.service.method(PLAYER_INTERFACE, async_callbacks=ASYNC_CALLBACKS)
    def Stop(self, reply_handler, error_handler):
        self._dispatch("Stop", self.player.stop(), reply_handler, error_handler)

    @dbus.service.method(PLAYER_INTERFACE, async_callbacks=ASYNC_CALLBACKS)
    def Play(self, reply_handler, error_handler):
        self._dispatch("Play", self.player.play(), reply_handler, error_handler)

    @dbus.service.method(PLAYER_INTERFACE, in_signature="x", async_callbacks=ASYNC_CALLBACKS)
    def Seek(self, offset, reply_handler, error_handler):
        self._dispatch("Seek", self.player.seek(int(offset)), reply_handler, error_handler)

    @dbus.service.method(PLAYER_INTERFACE, in_signature="ox", async_callbacks=ASYNC_CALLBACKS)
    def SetPosition(self, track_id, position, reply_handler, error_handler):
        self._dispatch(
            "SetPosition",
            self.player.set_position(str(track_id), int(position)),
            reply_handler,
            error_handler,
        )

    @dbus.service.method(PLAYER_INTERFACE, in_signature="s")
    def OpenUri(self, uri):
        # Playing arbitrary URIs is not offered
        logger.debug("MprisObject.OpenUri %s", uri)

    # -------------------------------------------------------------------------
    # org.freedesktop.DBus.Properties
    # -------------------------------------------------------------------------

    @dbus.service.method(
        PROPERTIES_INTERFACE,
        in_signature="ss",
        out_signature="v",
        async_callbacks=ASYNC_CALLBACKS,
    )
    def Get(self, interface, prop, reply_handler, error_handler):
        logger.debug("MprisObject.Get %s.%s", interface, prop)
        if interface == ROOT_INTERFACE:
            if prop in self._root_properties:
                reply_handler(self._root_properties[prop])
            else:
                error_handler(UnknownPropertyError(f"No such property: {prop}"))
        elif interface == PLAYER_INTERFACE:
            if not self.player.has_property(prop):
                error_handler(UnknownPropertyError(f"No such property: {prop}"))
                return
            self._dispatch(
                f"Get {prop}",
                self.player.get_property(prop),
                reply_handler,
                error_handler,
                convert=lambda value: player_property_to_dbus(prop, value),
            )
        else:
            error_handler(UnknownInterfaceError(f"No such interface: {interface}"))

    @dbus.service.method(
        PROPERTIES_INTERFACE,
        in_signature="s",
        out_signature="a{sv}",
        async_callbacks=ASYNC_CALLBACKS,
    )
    def GetAll(self, interface, reply_handler, error_handler):
        logger.debug("MprisObject.GetAll %s", interface)
        if interface == ROOT_INTERFACE:
            reply_handler(self._root_properties)
        elif interface == PLAYER_INTERFACE:
            self._dispatch(
                "GetAll",
                self.player.get_all(),
                reply_handler,
                error_handler,
                convert=player_properties_to_dbus,
            )
        else:
            error_handler(UnknownInterfaceError(f"No such interface: {interface}"))

    @dbus.service.method(
        PROPERTIES_INTERFACE,
        in_signature="ssv",
        async_callbacks=ASYNC_CALLBACKS,
    )
    def Set(self, interface, prop, value, reply_handler, error_handler):
        logger.debug("MprisObject.Set %s.%s = %r", interface, prop, value)
        if interface == ROOT_INTERFACE:
            if prop in self._root_properties:
                error_handler(PropertyReadOnlyError(f"Property is read-only: {prop}"))
            else:
                error_handler(UnknownPropertyError(f"No such property: {prop}"))
        elif interface == PLAYER_INTERFACE:
            self._dispatch(
                f"Set {prop}",
                self.player.set_property(prop, value),
                reply_handler,
                error_handler,
            )
        else:
            error_handler(UnknownInterfaceError(f"No such interface: {interface}"))

    @dbus.service.signal(PROPERTIES_INTERFACE, signature="sa{sv}as")
    def PropertiesChanged(self, interface, changed, invalidated):
        pass


# =============================================================================
# Service lifecycle
# =============================================================================


class MprisService:
    """
    Owns the bus name, the exported object and the GLib thread.

    Usage:
        service = MprisService(player, identity)
        service.start()
        ...
        service.stop()
    """

    def __init__(
        self,
        player: MprisPlayer,
        identity: PlayerIdentity,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.player = player
        self.identity = identity
        self._loop = loop
        self._bus: dbus.Bus | None = None
        self._bus_name: dbus.service.BusName | None = None
        self._object: MprisObject | None = None
        self._glib_loop: GLib.MainLoop | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Claim the bus name and start serving calls.

        Must be called from the thread running the asyncio loop (or with
        an explicit loop).

        Raises:
            ServiceError: If the session bus is unreachable or the name is taken.
        """
        if self.is_running:
            logger.warning("MPRIS service already running")
            return

        loop = self._loop or asyncio.get_running_loop()

        dbus.mainloop.glib.threads_init()
        dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)

        try:
            self._bus = dbus.SessionBus()
            self._bus_name = dbus.service.BusName(
                self.identity.bus_name, bus=self._bus, do_not_queue=True
            )
        except dbus.exceptions.DBusException as e:
            raise ServiceError(f"Cannot register {self.identity.bus_name}: {e}") from e

        self._object = MprisObject(self._bus, self.player, self.identity, loop)

        self._glib_loop = GLib.MainLoop()
        self._thread = threading.Thread(
            target=self._glib_loop.run, name="mpris-dbus", daemon=True
        )
        self._thread.start()

        logger.info("MPRIS service started as %s", self.identity.bus_name)

    def emit_properties_changed(self, changed: dict[str, Any]) -> None:
        """Announce changed player properties. Safe to call from any thread."""
        if self._object is None:
            return
        GLib.idle_add(
            _call_once,
            self._object.PropertiesChanged,
            PLAYER_INTERFACE,
            player_properties_to_dbus(changed),
            dbus.Array([], signature="s"),
        )

    def stop(self) -> None:
        """Stop serving calls and release the bus name."""
        if self._glib_loop is not None:
            self._glib_loop.quit()
        if self._thread is not None:
            self._thread.join(timeout=THREAD_JOIN_TIMEOUT)

        if self._object is not None:
            self._object.remove_from_connection()

        self._object = None
        self._bus_name = None
        self._bus = None
        self._glib_loop = None
        self._thread = None

        logger.info("MPRIS service stopped")
