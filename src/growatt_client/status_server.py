#!/usr/bin/env python3
"""JSON status server for a Growatt mix system.

Reads commands from stdin and writes one JSON snapshot per line to stdout,
so a dashboard or shell pipeline can poll the plant without handling the
login session itself.
"""

import asyncio
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Optional

from .client import DEFAULT_SERVER_URL, GrowattClient, GrowattError, NotAuthenticated

_LOGGER = logging.getLogger(__name__)


class StatusServer:
    """JSON-lines server around one GrowattClient."""

    def __init__(self, client: Optional[GrowattClient] = None):
        # Credentials from environment
        self.username = os.environ.get("GROWATT_USERNAME", "")
        self.password = os.environ.get("GROWATT_PASSWORD", "")
        self.plant_id = os.environ.get("GROWATT_PLANT_ID", "")
        self.mix_id = os.environ.get("GROWATT_MIX_ID")
        self.server_url = os.environ.get("GROWATT_SERVER_URL", DEFAULT_SERVER_URL)

        if not self.username or not self.password or not self.plant_id:
            self._output_error(
                "Missing GROWATT_USERNAME, GROWATT_PASSWORD or GROWATT_PLANT_ID"
            )
            sys.exit(1)

        self.client = client or GrowattClient(server_url=self.server_url)

    def _output(self, data: dict):
        """Output JSON to stdout."""
        print(json.dumps(data), flush=True)

    def _output_error(self, message: str):
        """Output error JSON."""
        self._output({"error": message})

    async def _call(self, operation, *args):
        """Run a client call, logging in first and again if the session lapsed."""
        if not self.client.is_authenticated:
            await self.client.login(self.username, self.password)
        try:
            return await operation(*args)
        except NotAuthenticated:
            _LOGGER.info("Session expired, logging in again")
            await self.client.login(self.username, self.password)
            return await operation(*args)

    async def fetch_data(self) -> dict[str, Any]:
        """Fetch the plant's devices and the status of its mix devices."""
        result = {
            "timestamp": datetime.now().isoformat(),
            "plant_id": self.plant_id,
            "devices": [],
            "mix_status": {},
        }

        try:
            devices = await self._call(self.client.device_list_by_plant, self.plant_id)
            result["devices"] = [d.to_dict() for d in devices]

            if self.mix_id:
                mix_ids = [self.mix_id]
            else:
                mix_ids = [d.serial for d in devices.mix_devices if d.serial]

            for mix_id in mix_ids:
                status = await self._call(
                    self.client.mix_system_status, mix_id, self.plant_id
                )
                result["mix_status"][mix_id] = status.to_dict()

        except GrowattError as e:
            _LOGGER.warning("Refresh failed: %s", e)
            result["error"] = str(e)

        return result

    async def handle_line(self, line: str) -> bool:
        """Handle one command line. Returns False when the server should stop."""
        line = line.strip()
        if not line:
            return True

        try:
            cmd = json.loads(line)
        except json.JSONDecodeError:
            self._output_error(f"Invalid JSON: {line}")
            return True

        command = cmd.get("command", "") if isinstance(cmd, dict) else ""

        if command == "refresh":
            self._output(await self.fetch_data())
        elif command == "quit":
            return False
        else:
            self._output_error(f"Unknown command: {command}")
        return True

    async def run(self):
        """Main run loop - read commands from stdin, output to stdout."""
        loop = asyncio.get_running_loop()

        async with self.client:
            self._output(await self.fetch_data())

            while True:
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    # EOF
                    break
                if not await self.handle_line(line):
                    break


def main():
    """Entry point for the status server."""
    logging.basicConfig(
        level=os.environ.get("GROWATT_LOG_LEVEL", "WARNING").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    server = StatusServer()
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
