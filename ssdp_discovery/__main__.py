#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import asyncio
import logging

from ssdp_discovery.internal_types import *

from ssdp_discovery import (
    __version__ as pkg_version,
    SsdpDiscovery,
    SsdpSearchTarget,
    SsdpMSearchResponse,
    CaseInsensitiveDict,
    DEFAULT_RESPONSE_WAIT_TIME,
  )
from ssdp_discovery.constants import DEFAULT_MAX_WAIT, DEFAULT_MULTICAST_TTL
from ssdp_discovery.upnp import WELL_KNOWN_SEARCH_TARGETS

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

def response_summary(response: SsdpMSearchResponse) -> JsonableDict:
    """A JSON-serializable description of a discovered device or service"""
    summary: JsonableDict = {
        "st": str(response.search_target),
        "usn": response.usn,
        "location": response.location,
        "server": response.server,
        "max_age": response.max_age,
        "cache_control": None if response.cache_control is None else response.cache_control.isoformat(),
        "date": None if response.date is None else response.date.isoformat(),
        "other_headers": dict(response.other_headers),
    }
    return summary

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    def _parse_arg_headers(self, arg_headers: List[str]) -> CaseInsensitiveDict:
        headers: CaseInsensitiveDict[str] = CaseInsensitiveDict()
        for header_assignment in arg_headers:
            if not '=' in header_assignment:
                raise CmdExitError(1, f"Header must be of the form <name>=<value>: '{header_assignment}'")
            name, value = header_assignment.split('=', 1)
            headers[name] = value
        return headers

    def _parse_search_target(self, target: str) -> SsdpSearchTarget:
        result = WELL_KNOWN_SEARCH_TARGETS.get(target)
        if result is None:
            result = SsdpSearchTarget.parse(target)
        if result is None:
            raise CmdExitError(1, f"Invalid search target: '{target}'")
        return result

    async def cmd_search(self) -> int:
        response_wait_time: float = self._args.wait_time
        max_wait: int = self._args.max_wait
        max_responses: int = self._args.max_responses
        search_target = self._parse_search_target(self._args.target)
        headers = self._parse_arg_headers(self._args.headers)
        async with SsdpDiscovery(
                bind_address=self._args.bind_address,
                interface=self._args.interface,
                multicast_ttl=self._args.ttl,
              ) as discovery:
            async with discovery.search(
                    search_target,
                    timeout=response_wait_time,
                    max_wait=max_wait,
                    max_responses=max_responses,
                    other_headers=headers,
                  ) as responses:
                async for response in responses:
                    print(json.dumps(response_summary(response), indent=2, sort_keys=True))
                    sys.stdout.flush()

        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the ssdp command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(prog="ssdp", description="Discover UPnP devices and services with SSDP.")


        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')


        # ======================= search

        parser_search = subparsers.add_parser('search', description="Search for UPnP devices and services")
        parser_search.add_argument('-t', '--target', default="ssdp:all",
                            help='''The search target (ST) to search for, or a well-known alias such as "media-server".
                                    Default: "ssdp:all"''')
        parser_search.add_argument('--wait-time', dest="wait_time", type=float, default=DEFAULT_RESPONSE_WAIT_TIME,
                            help=f'''The amount of time to wait for responses, in seconds. Default: {DEFAULT_RESPONSE_WAIT_TIME}''')
        parser_search.add_argument('--mx', dest="max_wait", type=int, default=DEFAULT_MAX_WAIT,
                            help=f'''The MX value of the M-SEARCH request, in seconds. Default: {DEFAULT_MAX_WAIT}''')
        parser_search.add_argument('--max-responses', dest="max_responses", type=int, default=0,
                            help='The maximum number of responses to return. Default: 0 (no limit)')
        parser_search.add_argument('-H', '--header', dest="headers", action='append', default=[],
                            help='''A <name>=<value> header to include in the M-SEARCH request. May be repeated.''')
        parser_search.add_argument('-b', '--bind', dest="bind_address", default=None,
                            help='''The local unicast IP address to bind to. Default: all interfaces.''')
        parser_search.add_argument('-i', '--interface', dest="interface", default=None,
                            help='''The network interface to search on. Default: all interfaces.''')
        parser_search.add_argument('--ttl', type=int, default=DEFAULT_MULTICAST_TTL,
                            help=f'''The multicast TTL of M-SEARCH requests. Default: {DEFAULT_MULTICAST_TTL}''')
        parser_search.set_defaults(func=self.cmd_search)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"ssdp: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"ssdp: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
