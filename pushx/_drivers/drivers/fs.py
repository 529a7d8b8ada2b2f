"""Filesystem driver: writes the payload to ``<folder>/<key>``.

The key may contain ``{{selector}}`` tokens resolved against the payload,
e.g. ``--fs-key "users/{{user.id}}.json"``. Keys with tokens require the
payload to be read into memory; plain keys are streamed.
"""

import io
from pathlib import Path
from typing import BinaryIO

from pushx.exceptions import DeliveryError
from pushx.logging_config import logger
from pushx.template import has_tokens, render

from ..protocol import BaseDriver, Setting
from ..stream import copy_stream


class FSDriver(BaseDriver):
    name = "fs"
    description = "Write the payload to a file on the local filesystem"

    SETTINGS = (
        Setting("folder", "fs-folder", "FS_FOLDER", "Folder to write into", default="."),
        Setting("key", "fs-key", "FS_KEY", "File name within the folder; may contain {{selector}} tokens"),
    )

    def init(self) -> None:
        super().init()
        self.require("key")

    def push(self, stream: BinaryIO) -> None:
        key = self.key
        if has_tokens(key):
            payload = stream.read()
            key = render(payload, key)
            stream = io.BytesIO(payload)
        if not key:
            raise DeliveryError("fs: resolved key is empty")

        target = Path(self.folder) / key
        logger.debug(f"[fs] writing {target}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as f:
                written = copy_stream(stream, f)
        except OSError as e:
            raise DeliveryError(f"fs: failed to write {target}: {e}")
        logger.info(f"Wrote {written} bytes to {target}")
