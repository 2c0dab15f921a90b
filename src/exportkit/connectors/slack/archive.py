"""
Rewrite a Slack export archive, adding the private channels it lacks.

Every entry of the source zip is copied to the target unchanged. When the
source has no ``groups.json``, the private channel listing is fetched from
the API and written as ``groups.json``, followed by ``<name>/messages.json``
and ``<name>/replies.json`` for each channel.
"""

import io
import copy
import shutil
import zipfile
import contextlib
from pathlib import Path
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, TextIO

from exportkit.utils.logs import report
from exportkit.connectors.slack.api import (
    Record,
    SlackClient,
    fetch_channel_history,
    fetch_channel_replies,
    list_private_channels,
    write_records,
)
from exportkit.connectors.slack.errors import (
    ArchiveCreateError,
    ArchiveOpenError,
    CopyError,
    WriteError,
)
from exportkit.connectors.slack.schema import Channel, Pagination

logger = report.settings(__file__)

GROUPS_ENTRY = "groups.json"


@dataclass
class RewriteResult:
    """Summary of one archive rewrite"""
    copied: List[str] = field(default_factory=list)
    groups_found: bool = False
    channels: List[str] = field(default_factory=list)
    closed_cleanly: bool = True


# -------------- Archive handles ----------------------------------------------

def _open_source(source: Path) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(source, "r")
    except (OSError, zipfile.BadZipFile) as exc:
        logger.error("Could not open input archive %s: %s", source, exc)
        raise ArchiveOpenError(f"Could not open input archive for reading: {source}") from exc


def _create_target(target: Path) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED)
    except OSError as exc:
        logger.error("Could not create output archive %s: %s", target, exc)
        raise ArchiveCreateError(f"Could not open the output archive for writing: {target}: {exc}") from exc


def _close_target(writer: zipfile.ZipFile, target: Path) -> bool:
    """Finalize the target; a failure is logged, not raised."""
    try:
        writer.close()
    except (OSError, ValueError) as exc:
        logger.error("Failed to close the output archive %s: %s", target, exc)
        return False
    return True


@contextlib.contextmanager
def _text_entry(writer: zipfile.ZipFile, name: str) -> Iterator[TextIO]:
    """Open a new UTF-8 text entry in the target archive."""
    try:
        raw = writer.open(name, "w")
    except (OSError, ValueError, RuntimeError) as exc:
        logger.error("Could not create entry %s: %s", name, exc)
        raise WriteError(f"could not create {name} in output archive: {exc}") from exc
    with io.TextIOWrapper(raw, encoding="utf-8") as sink:
        yield sink


def _copy_entry(reader: zipfile.ZipFile, writer: zipfile.ZipFile, info: zipfile.ZipInfo) -> None:
    """Copy one entry's bytes, keeping its header metadata."""
    # The writer rewrites offsets and sizes on the header it is given
    header = copy.copy(info)
    try:
        with reader.open(info) as src, writer.open(header, "w") as dst:
            shutil.copyfileobj(src, dst)
    except (OSError, zipfile.BadZipFile, RuntimeError, NotImplementedError, ValueError) as exc:
        logger.error("Failed to copy %s: %s", info.filename, exc)
        raise CopyError(f"Failed to copy file to output archive: {info.filename}: {exc}") from exc


# -------------- Ingestion ----------------------------------------------------

def ingest_channels(client: SlackClient,
                    channels: List[Record],
                    writer: zipfile.ZipFile,
                    pagination: Optional[Pagination] = None) -> List[str]:
    """Write messages.json and replies.json for each channel, in listing order.

    The first failure propagates; later channels are not attempted.
    """
    pagination = pagination or Pagination()
    names = []
    for record in channels:
        channel = Channel.from_record(record)
        report.progress(logger, "Fetching the history of private channel %s", channel.name)

        with _text_entry(writer, channel.messages_entry) as sink:
            ts_ids = fetch_channel_history(client, channel.id, sink, pagination.history_limit)

        report.progress(logger, "Fetching the replies of private channel %s", channel.name)
        with _text_entry(writer, channel.replies_entry) as sink:
            fetch_channel_replies(client, channel.id, ts_ids, sink, pagination.replies_limit)

        report.progress(logger, "Done with replies of private channel %s", channel.name)
        names.append(channel.name)
    return names


def _create_groups(client: SlackClient,
                   writer: zipfile.ZipFile,
                   pagination: Pagination) -> List[str]:
    report.progress(logger, "Creating %s by fetching private channels.", GROUPS_ENTRY)
    with _text_entry(writer, GROUPS_ENTRY) as sink:
        channels = list_private_channels(client, pagination.channel_limit)
        write_records(channels, sink)

    report.progress(logger, "Fetching the contents of private channels")
    return ingest_channels(client, channels, writer, pagination)


# -------------- Public API ---------------------------------------------------

def rewrite_archive(source,
                    target,
                    client: SlackClient,
                    pagination: Optional[Pagination] = None) -> RewriteResult:
    """Copy ``source`` into a new ``target`` archive and add missing private channels.

    Raises an ``ExportError`` subclass on the first failure. Entries already
    written to the target stay there; nothing is rolled back.
    """
    source, target = Path(source), Path(target)
    pagination = pagination or Pagination()

    if source.resolve() == target.resolve():
        raise ArchiveCreateError(f"Output archive must differ from the input archive: {target}")

    result = RewriteResult()
    with _open_source(source) as reader:
        writer = _create_target(target)
        try:
            for info in reader.infolist():
                report.progress(logger, "Processing file: %s", info.filename)
                _copy_entry(reader, writer, info)
                result.copied.append(info.filename)

                if info.filename == GROUPS_ENTRY:
                    result.groups_found = True
                    report.progress(logger, "The file %s is already present in the dump, "
                                    "we don't fetch it again", GROUPS_ENTRY)

            if not result.groups_found:
                result.channels = _create_groups(client, writer, pagination)
        except BaseException:
            logger.error("Rewrite of %s aborted; %s keeps the entries written so far", source, target)
            _close_target(writer, target)
            raise

        result.closed_cleanly = _close_target(writer, target)

    logger.info("Rewrote %s -> %s: %d entries copied, %d channels added",
                source, target, len(result.copied), len(result.channels))
    return result
