# =============================================================================
# export_bridge.py — SGM Device Export Bridge
# =============================================================================
#
# The ONLY representation a stimulator ever receives:
#
#   amplitudes : int32   canonical x 1000   (uA → nA,  mV → uV)
#   durations  : uint64  seconds  x 1e6     (s  → us)
#
# Entry points:
#
#   get_stim_values(train) -> (int32[], uint64[])
#       Pure conversion.  Refuses trains whose durations are off the
#       min_time_dt grid or finer than 1 us, and amplitudes that overflow int32.
#
#   send_to_device(device, channel_1b, train, mode="new", mirror_to_sync=False)
#       Hands the exported arrays to a StimulatorDevice.  The device object is
#       an external collaborator: transport, memory negotiation and retries
#       are its business, never this module's.
#
# Channels are 1-based at this boundary (as printed on the hardware) and
# converted to 0-based for the device call.

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

import numpy as np

from PTME.SMM.constants import (
    AMPLITUDE_DEVICE_SCALE, DURATION_DEVICE_SCALE, INT32_MAX, INT32_MIN, NS_PER_S,
)
from PTME.SMM.errors import AmplitudeOutOfRange, DurationNotQuantized, InvalidOption
from PTME.SMM.units import OutputKind
from PTME.SQM.rounding import is_multiple_of, to_ns
from PTME.SGM.pulse_train import PulseTrain

logger = logging.getLogger(__name__)


class DeviceDestination(Enum):
    """Which stimulator memory a segment list is written to."""
    CURRENT = "current"
    VOLTAGE = "voltage"
    SYNC    = "sync"


class StimulatorDevice(Protocol):
    """
    What send_to_device() needs from a stimulator driver.

    Both calls take the 0-based channel, the int32 amplitudes, the uint64
    durations (us) and the DeviceDestination.
    """

    def prepare_and_send_data(self, channel_0b: int, amplitudes: np.ndarray,
                              durations: np.ndarray, destination: DeviceDestination) -> None:
        ...

    def prepare_and_append_data(self, channel_0b: int, amplitudes: np.ndarray,
                                durations: np.ndarray, destination: DeviceDestination) -> None:
        ...


# ── Conversion ───────────────────────────────────────────────────────────────

def get_stim_values(train: PulseTrain) -> tuple[np.ndarray, np.ndarray]:
    """
    Convert a finished train into stimulator integer units.

    Parameters
    ----------
    train : PulseTrain

    Returns
    -------
    (amplitudes, durations) : (np.ndarray[int32], np.ndarray[uint64])
        nA or uV, and microseconds.

    Raises
    ------
    DurationNotQuantized   a duration is not an exact multiple of min_time_dt
                           or of the 1 us device tick
    AmplitudeOutOfRange    a scaled amplitude does not fit in int32
    """
    durations = train.durations
    on_grid   = is_multiple_of(durations, train.min_time_dt)
    if not np.all(on_grid):
        i = int(np.flatnonzero(~on_grid)[0])
        raise DurationNotQuantized(
            f"Duration {durations[i]!r} s (index {i}) is not a multiple of "
            f"min_time_dt ({train.min_time_dt!r} s)"
        )

    tick_ns  = NS_PER_S // DURATION_DEVICE_SCALE
    off_tick = to_ns(durations) % tick_ns != 0
    if np.any(off_tick):
        i = int(np.flatnonzero(off_tick)[0])
        raise DurationNotQuantized(
            f"Duration {durations[i]!r} s (index {i}) is not a whole number of "
            f"device ticks ({tick_ns / NS_PER_S!r} s)"
        )

    scaled = np.rint(train.amplitudes * AMPLITUDE_DEVICE_SCALE)
    if scaled.size and (scaled.min() < INT32_MIN or scaled.max() > INT32_MAX):
        raise AmplitudeOutOfRange(
            f"Amplitudes must fit in int32 once scaled x{AMPLITUDE_DEVICE_SCALE}; "
            f"range is [{scaled.min():.0f}, {scaled.max():.0f}]"
        )

    amplitudes = scaled.astype(np.int32)
    durations  = np.rint(durations * DURATION_DEVICE_SCALE).astype(np.uint64)
    return amplitudes, durations


def _sync_amplitudes(amplitudes: np.ndarray) -> np.ndarray:
    sync = np.zeros_like(amplitudes)
    sync[amplitudes != 0] = 1
    return sync


# ── Device hand-off ──────────────────────────────────────────────────────────

def send_to_device(
    device: StimulatorDevice,
    channel_1b: int,
    train: PulseTrain,
    mode: str = "new",
    mirror_to_sync: bool = False,
) -> None:
    """
    Export `train` and write it to one stimulator channel.

    Args:
        device:         StimulatorDevice driver
        channel_1b:     1-based channel number
        train:          the PulseTrain to send
        mode:           "new" replaces the channel's data, "append" extends it
        mirror_to_sync: also write a sync copy (1 wherever the train is
                        nonzero) to the same channel's SYNC memory
    """
    if isinstance(channel_1b, bool) or not isinstance(channel_1b, (int, np.integer)) or channel_1b < 1:
        raise InvalidOption(f"channel_1b must be an integer >= 1, got {channel_1b!r}")
    if mode == "new":
        write = device.prepare_and_send_data
    elif mode == "append":
        write = device.prepare_and_append_data
    else:
        raise InvalidOption(f"mode must be 'new' or 'append', got {mode!r}")

    amplitudes, durations = get_stim_values(train)
    channel_0b  = int(channel_1b) - 1
    destination = (DeviceDestination.CURRENT if train.output_kind is OutputKind.CURRENT
                   else DeviceDestination.VOLTAGE)

    logger.info("Sending %d segment(s) (%g s) to channel %d [%s, %s]",
                amplitudes.size, train.total_duration, channel_1b, destination.value, mode)
    write(channel_0b, amplitudes, durations, destination)

    if mirror_to_sync:
        logger.info("Mirroring channel %d to sync output", channel_1b)
        write(channel_0b, _sync_amplitudes(amplitudes), durations, DeviceDestination.SYNC)
