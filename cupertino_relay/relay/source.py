"""
RTSP Source
===========

Reads an RTSP stream with PyAV (FFmpeg demuxer), cuts every demuxed H.264
access unit into NAL units and hands each one to the pipeline.

Runs on its own thread; the pipeline's ingest() may block it when the
queue is full, which pushes backpressure into the demuxer.
"""

import logging
import threading
from typing import Any, Callable, Iterator, Optional

import av
from av.error import FFmpegError

from cupertino_relay.errors import QueueClosed, SourceError
from cupertino_relay.interfaces import MediaContainer, MediaStream
from cupertino_relay.relay.config import RelayConfig
from cupertino_relay.units.nal import (
    has_start_code,
    nal_type_name,
    nal_unit_type,
    parse_parameter_sets,
    split_annexb,
    split_length_prefixed,
)

logger = logging.getLogger(__name__)

UnitSink = Callable[[bytes, Optional[int]], Any]


class RTSPSource:
    """
    H.264 NAL unit producer backed by an RTSP session.

    Args:
        config: RelayConfig instance (stream_url, transport, timeout)
        sink: Called once per NAL unit with (payload, nal_type);
            normally Pipeline.ingest
        opener: Container factory with av.open's signature (tests inject a fake)

    Usage:
        >>> source = RTSPSource(config, sink=pipeline.ingest)
        >>> source.open()   # connect + find the H.264 track
        >>> source.run()    # blocks until end of stream, stop() or error
        >>> source.close()
    """

    def __init__(
        self,
        config: RelayConfig,
        sink: UnitSink,
        opener: Callable[..., MediaContainer] = av.open,
    ):
        self.config = config
        self.sink = sink
        self._opener = opener

        self.container: Optional[MediaContainer] = None
        self.stream: Optional[MediaStream] = None
        self._length_size = 0
        self._stop_event = threading.Event()

        self.packets = 0
        self.units = 0

    def open(self) -> None:
        """
        Connect to the stream and select the H.264 track.

        Raises:
            SourceError: If the stream cannot be opened or has no H.264 track
        """
        url = self.config.stream_url
        options = {"rtsp_transport": self.config.rtsp_transport}

        logger.info(
            f"Opening stream {self.config.to_status_dict()['stream_url']}",
            extra={"component": "source", "event": "source_open_start"}
        )

        try:
            self.container = self._opener(
                url, options=options, timeout=self.config.source_timeout
            )
        except (FFmpegError, OSError) as e:
            raise SourceError(f"Cannot open stream: {e}") from e

        self.stream = self._find_h264_stream(self.container)
        if self.stream is None:
            self.close()
            raise SourceError("H264 track not found")

        try:
            self._inspect_parameter_sets(self.stream)
        except SourceError:
            self.close()
            raise

        logger.info(
            f"H264 track found (stream #{self.stream.index})",
            extra={
                "component": "source",
                "event": "source_opened",
                "stream_index": self.stream.index,
                "nal_length_size": self._length_size,
            }
        )

    def run(self) -> None:
        """
        Demux until end of stream or stop(). Blocking.

        Returns normally when the stream ends, when stop() is called, or when
        the pipeline stops accepting units (queue closed).

        Raises:
            SourceError: If demuxing fails or the source was not opened
        """
        if self.container is None or self.stream is None:
            raise SourceError("Source not opened. Call open() first.")

        try:
            for packet in self.container.demux(self.stream):
                if self._stop_event.is_set():
                    break
                # Flush packets at end of stream carry no data
                if packet.size == 0:
                    continue

                self.packets += 1
                for nalu in self.split(bytes(packet)):
                    self._emit(nalu)

        except QueueClosed:
            logger.info(
                "Pipeline closed, source stopping",
                extra={"component": "source", "event": "source_pipeline_closed"}
            )
        except (FFmpegError, OSError, ValueError) as e:
            raise SourceError(f"Stream error: {e}") from e

        logger.info(
            f"Source finished ({self.packets} packets, {self.units} units)",
            extra={
                "component": "source",
                "event": "source_finished",
                "packets": self.packets,
                "units": self.units,
            }
        )

    def split(self, data: bytes) -> Iterator[bytes]:
        """Split one access unit into NAL units (Annex B or length-prefixed)."""
        if self._length_size and not has_start_code(data):
            return split_length_prefixed(data, self._length_size)
        if has_start_code(data):
            return split_annexb(data)
        # Single bare NAL unit
        return iter((data,)) if data else iter(())

    def stop(self) -> None:
        """Ask run() to return after the current packet."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def close(self) -> None:
        """Close the container (not while run() is demuxing on another thread)."""
        if self.container is not None:
            self.container.close()
            self.container = None

    # ========================================================================
    # Private
    # ========================================================================

    def _emit(self, nalu: bytes) -> None:
        nal_type = nal_unit_type(nalu)
        if self.config.verbose_units:
            logger.debug(
                f"{nal_type_name(nal_type):>16}({nal_type}): {len(nalu)}",
                extra={
                    "component": "source",
                    "event": "nal_unit",
                    "nal_type": nal_type,
                    "unit_size": len(nalu),
                }
            )
        self.sink(nalu, nal_type)
        self.units += 1

    @staticmethod
    def _find_h264_stream(container: MediaContainer) -> Optional[MediaStream]:
        for stream in container.streams.video:
            if stream.codec_context.name == "h264":
                return stream
        return None

    def _inspect_parameter_sets(self, stream: MediaStream) -> None:
        """Log SPS/PPS found out-of-band and learn the NAL length size."""
        extradata = stream.codec_context.extradata
        try:
            sps, pps, self._length_size = parse_parameter_sets(extradata or b"")
        except ValueError as e:
            raise SourceError(f"Invalid codec extradata: {e}") from e

        for name, sets in (("SPS", sps), ("PPS", pps)):
            if sets:
                logger.info(
                    f"{name} found ({len(sets[0])} bytes)",
                    extra={
                        "component": "source",
                        "event": f"{name.lower()}_found",
                        "count": len(sets),
                        "hex": sets[0].hex(),
                    }
                )
