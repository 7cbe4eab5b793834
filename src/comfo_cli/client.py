#!/usr/bin/env python3
"""A CLI for the comfo_rf library."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Final

import click
from colorama import Fore, Style, init as colorama_init

from comfo_rf import ComfoControlClient, PropertyUpdate, exceptions as exc
from comfo_rf.properties import (
    DEVICE_PROPERTIES,
    EXHAUST_FAN_SPEED,
    OUTDOOR_AIR_TEMPERATURE,
    SUPPLY_AIR_TEMPERATURE,
    SUPPLY_FAN_SPEED,
    property_by_name,
)
from comfo_rf.rmi import RMI_PROPERTIES, rmi_property_by_name
from comfo_tx import DeviceInfo
from comfo_tx.logger import set_frame_logging, set_logging

DISCOVER: Final = "discover"
MONITOR: Final = "monitor"
READ: Final = "read"
TIME: Final = "time"

DEFAULT_PROPERTIES: Final = (
    OUTDOOR_AIR_TEMPERATURE,
    SUPPLY_AIR_TEMPERATURE,
    EXHAUST_FAN_SPEED,
    SUPPLY_FAN_SPEED,
)

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

_LOGGER = logging.getLogger(__name__)


class PropertyParamType(click.ParamType):
    name = "property"

    def __init__(self, catalog: dict[str, Any]) -> None:
        self._catalog = catalog

    def convert(self, value: str, param, ctx):  # type: ignore[no-untyped-def]
        if value.upper() in self._catalog:
            return value.upper()
        self.fail(f"{value!r} is not a known property", param, ctx)


# Args/Params for a gateway
class GatewayCommand(click.Command):  # client.py <command> <address> <uuid> --pin xxx
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.params.insert(0, click.Argument(("address",)))
        self.params.insert(1, click.Argument(("uuid",)))
        self.params.insert(  # --pin
            2,
            click.Option(("-p", "--pin"), type=click.INT, default=0, help="the PIN"),
        )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("-d", "--debug", count=True, help="-dd will also log the frames")
@click.option("-nc", "--no-color", is_flag=True, help="don't colour the output")
@click.pass_context
def cli(ctx, debug: int = 0, no_color: bool = False) -> None:
    """A CLI for the comfo_rf library."""

    set_logging(
        level=logging.DEBUG if debug else logging.INFO, color=not no_color
    )
    if debug > 1:
        set_frame_logging(color=not no_color)

    colorama_init(autoreset=True, strip=no_color)
    ctx.obj = {}


#
# 1/4: DISCOVER (broadcast, then list the gateways that respond)
@click.command()
@click.option("-t", "--timeout", type=click.FLOAT, default=5.0, help="in seconds")
@click.option("-l", "--limit", type=click.INT, default=None, help="stop after n")
@click.option("-b", "--broadcast", multiple=True, help="a broadcast address")
@click.pass_obj
def discover(obj, **kwargs: Any):
    """Discover the gateways on the local network."""
    return DISCOVER, kwargs


#
# 2/4: MONITOR (subscribe to properties, and print their updates)
@click.command(cls=GatewayCommand)
@click.option(
    "-P",
    "--property",
    "properties",
    multiple=True,
    type=PropertyParamType(DEVICE_PROPERTIES),
    help="e.g. OUTDOOR_AIR_TEMPERATURE",
)
@click.pass_obj
def monitor(obj, **kwargs: Any):
    """Subscribe to the properties of a ventilation unit, and print their updates."""
    return MONITOR, kwargs


#
# 3/4: TIME (get the gateway's time)
@click.command(cls=GatewayCommand)
@click.pass_obj
def time(obj, **kwargs: Any):
    """Print the time of a gateway."""
    return TIME, kwargs


#
# 4/4: READ (an RMI property)
@click.command(cls=GatewayCommand)
@click.argument("name", type=PropertyParamType(RMI_PROPERTIES))
@click.pass_obj
def read(obj, **kwargs: Any):
    """Read an (RMI) property of a ventilation unit, e.g. SERIAL_NUMBER."""
    return READ, kwargs


def print_device(device: DeviceInfo) -> None:
    print(
        f"{Style.BRIGHT}{Fore.GREEN}{device.address:<15}{Style.RESET_ALL}"
        f" uuid={device.uuid} mac={device.mac} version={device.version}"
    )


def print_update(update: PropertyUpdate) -> None:
    print(
        f"{Fore.CYAN}{update.property_name:<36}{Style.RESET_ALL}"
        f" {update.value!s:>10}  # {update.raw.hex()}"
    )


async def _discover(**kwargs: Any) -> None:
    devices = await ComfoControlClient.discover(
        list(kwargs["broadcast"]) or None,
        timeout=kwargs["timeout"],
        limit=kwargs["limit"],
    )
    if not devices:
        print(f"{Fore.YELLOW}No gateways found.")
    for device in devices:
        print_device(device)


async def _monitor(client: ComfoControlClient, **kwargs: Any) -> None:
    props = [property_by_name(n) for n in kwargs["properties"]] or DEFAULT_PROPERTIES

    for prop in props:
        await client.register_property_listener(prop, print_update)

    await client.transport.wait_for_disconnect()


async def async_main(command: str, **kwargs: Any) -> None:
    """Do certain things."""

    if command == DISCOVER:
        await _discover(**kwargs)
        return

    client = ComfoControlClient(kwargs["address"], kwargs["uuid"], pin=kwargs["pin"])

    try:  # main code here
        if command == TIME:
            print(f"Gateway time: {await client.get_server_time()}")

        elif command == READ:
            prop = rmi_property_by_name(kwargs["name"])
            print(f"{prop.name}: {await client.read_property(prop)}")

        elif command == MONITOR:
            await _monitor(client, **kwargs)

    except asyncio.CancelledError:
        msg = "ended via: CancelledError (e.g. SIGINT)"
    except exc.ComfoException as err:
        msg = f"ended via: ComfoException: {err}"
    else:
        msg = "ended without error"
    finally:
        await client.close_session()
        await client.disconnect()

    _LOGGER.info("client.py: Client stopped: %s", msg)


cli.add_command(discover)
cli.add_command(monitor)
cli.add_command(time)
cli.add_command(read)


def main() -> None:
    try:
        result = cli(standalone_mode=False)
    except click.ClickException as err:
        print(f"Error: {err}")
        sys.exit(-1)

    if isinstance(result, int):
        sys.exit(result)

    (command, kwargs) = result

    if sys.platform == "win32":  # do before asyncio.run()
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    try:
        asyncio.run(async_main(command, **kwargs))
    except KeyboardInterrupt:
        print("\r\nclient.py: Client stopped: ended via: KeyboardInterrupt")


if __name__ == "__main__":
    main()
