# src/domain/Services/gate_state_machine.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Set

from src.core.config import settings
from src.domain.Interfaces.event_publisher import IEventPublisher
from src.domain.Models.gate_state import GateState
from src.domain.Models.vehicle import VehicleRecord
from src.monitoring.metrics import gate_transitions_total

logger = logging.getLogger(__name__)


class GateStateMachine:
    """
    Dueño único del estado del gate.

    Estados: IDLE -> PRESENT_UNKNOWN -> PRESENT_REGISTERED | PRESENT_UNREGISTERED -> IDLE

    Reglas:
    - Sensor YES estando IDLE abre un episodio nuevo (PRESENT_UNKNOWN).
      YES repetido estando presente no cambia nada ni re-publica.
    - Sensor NO solo limpia a IDLE si pasaron `dwell_seconds` desde la última
      actualización; si no, la ausencia queda pendiente y el gate pasa a IDLE
      al cumplirse esa ventana (un YES intermedio la cancela). Mientras la
      ausencia está pendiente no se aceptan resultados de detección, así que
      la ventana no se corre.
    - NO estando ya IDLE es un no-op (y suelta un flag de detección colgado).
    - Cada actualización publicada re-arma un único timer de `reset_timeout_seconds`
      que fuerza IDLE si el NO del sensor se pierde.
    - Un resultado de detección de un episodio anterior (o con el sensor ya
      ausente o con la ausencia pendiente) se descarta sin publicar.

    La concurrencia es cooperativa (un solo event loop): no hay locks, el
    último en escribir gana y las reglas de debounce/timeout lo resuelven.
    """

    def __init__(
        self,
        publisher: IEventPublisher,
        dwell_seconds: Optional[float] = None,
        reset_timeout_seconds: Optional[float] = None,
        channel: Optional[str] = None,
        event: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.publisher = publisher
        self.dwell_seconds = settings.gate_dwell_seconds if dwell_seconds is None else dwell_seconds
        self.reset_timeout_seconds = (
            settings.gate_reset_timeout_seconds if reset_timeout_seconds is None else reset_timeout_seconds
        )
        self.channel = channel or settings.gate_channel
        self.event = event or settings.gate_event
        self._clock = clock

        self._state = GateState.idle()
        self._episode = 0
        self._detection_in_progress = False

        self._reset_handle: Optional[asyncio.TimerHandle] = None
        self._absence_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    # ---------------------------------------------------------
    #  LECTURA
    # ---------------------------------------------------------
    def snapshot(self) -> GateState:
        return self._state

    def to_payload(self) -> dict:
        return self._state.to_payload()

    @property
    def detection_in_progress(self) -> bool:
        return self._detection_in_progress

    @property
    def absence_pending(self) -> bool:
        return self._absence_handle is not None

    # ---------------------------------------------------------
    #  SENSOR
    # ---------------------------------------------------------
    async def report_sensor(self, present: bool) -> GateState:
        now = self._clock()

        if present:
            self._cancel_absence_check()
            if self._state.sensor_present:
                return self._state
            self._episode += 1
            self._detection_in_progress = False
            await self._transition(GateState.present_unknown(now), "sensor YES")
            return self._state

        if not self._state.sensor_present:
            # ya IDLE: no-op idempotente
            self._detection_in_progress = False
            self._cancel_absence_check()
            return self._state

        remaining = self._dwell_remaining(now)
        if remaining <= 0:
            await self._clear("sensor NO")
        else:
            logger.debug("Sensor NO dentro de la ventana de dwell; se re-evalúa en %.2fs", remaining)
            self._schedule_absence_check(remaining)
        return self._state

    # ---------------------------------------------------------
    #  DETECCIÓN (episodio actual)
    # ---------------------------------------------------------
    def claim_detection(self) -> Optional[int]:
        """Marca 'detección en curso' para el episodio actual. None si ya lo estaba."""
        if self._detection_in_progress:
            return None
        self._detection_in_progress = True
        return self._episode

    def release_detection(self, episode: int) -> None:
        # el flag de un episodio viejo ya se limpió al abrir el nuevo
        if episode == self._episode:
            self._detection_in_progress = False

    def reset_detection_flag(self) -> None:
        self._detection_in_progress = False

    async def resolve_registered(
        self,
        episode: int,
        plate: str,
        vehicle: VehicleRecord,
        detections: List[dict],
        image_width: int,
        image_height: int,
    ) -> bool:
        if not self._accepts(episode):
            return False
        new_state = GateState.present_registered(
            now=self._clock(),
            plate=plate,
            vehicle=vehicle.summary,
            driver_name=vehicle.driver_name,
            detections=detections,
            image_width=image_width,
            image_height=image_height,
        )
        await self._transition(new_state, "plate registered")
        return True

    async def resolve_unregistered(
        self,
        episode: int,
        plate: Optional[str],
        detections: List[dict],
        image_width: int,
        image_height: int,
    ) -> bool:
        if not self._accepts(episode):
            return False
        new_state = GateState.present_unregistered(
            now=self._clock(),
            plate=plate,
            detections=detections,
            image_width=image_width,
            image_height=image_height,
        )
        await self._transition(new_state, "plate unregistered" if plate else "no plate")
        return True

    def _accepts(self, episode: int) -> bool:
        if not self._state.sensor_present or self.absence_pending or episode != self._episode:
            logger.info(
                "Resultado de detección descartado (episodio %s, actual %s, sensor=%s, ausencia pendiente=%s)",
                episode, self._episode, self._state.sensor_present, self.absence_pending,
            )
            return False
        return True

    # ---------------------------------------------------------
    #  TRANSICIONES
    # ---------------------------------------------------------
    async def _transition(self, new_state: GateState, reason: str) -> None:
        previous = self._state
        self._state = new_state
        gate_transitions_total.labels(phase=new_state.phase.value).inc()
        logger.info("🚧 Gate %s -> %s (%s) plate=%s",
                    previous.phase.value, new_state.phase.value, reason, new_state.plate)

        if new_state.sensor_present:
            self._arm_reset_timer()
        else:
            self._cancel_reset_timer()

        await self._publish(new_state)

    async def _clear(self, reason: str) -> None:
        self._cancel_absence_check()
        self._detection_in_progress = False
        await self._transition(GateState.idle(self._clock()), reason)

    async def _publish(self, state: GateState) -> None:
        try:
            await self.publisher.publish(self.channel, self.event, state.to_payload())
        except Exception:
            # best-effort: el estado ya cambió, el dashboard se re-sincroniza con /api/gate-state
            logger.exception("❌ Error publicando %s en %s", self.event, self.channel)

    def _dwell_remaining(self, now: float) -> float:
        last = self._state.last_update
        if last is None:
            return 0.0
        return self.dwell_seconds - (now - last)

    # ---------------------------------------------------------
    #  TIMERS
    # ---------------------------------------------------------
    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _arm_reset_timer(self) -> None:
        self._cancel_reset_timer()
        loop = asyncio.get_running_loop()
        handle = loop.call_later(
            self.reset_timeout_seconds, lambda: self._spawn(self._on_reset_timeout(handle))
        )
        self._reset_handle = handle

    def _cancel_reset_timer(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    async def _on_reset_timeout(self, handle: asyncio.TimerHandle) -> None:
        # entre el disparo y esta task pudo re-armarse el timer
        if handle is not self._reset_handle:
            return
        self._reset_handle = None
        if self._state.sensor_present:
            logger.warning("⏱️ Sin actualizaciones en %.1fs; forzando gate a IDLE", self.reset_timeout_seconds)
            await self._clear("reset timeout")

    def _schedule_absence_check(self, delay: float) -> None:
        self._cancel_absence_check()
        loop = asyncio.get_running_loop()
        handle = loop.call_later(delay, lambda: self._spawn(self._on_absence_check(handle)))
        self._absence_handle = handle

    def _cancel_absence_check(self) -> None:
        if self._absence_handle is not None:
            self._absence_handle.cancel()
            self._absence_handle = None

    async def _on_absence_check(self, handle: asyncio.TimerHandle) -> None:
        if handle is not self._absence_handle:
            return
        self._absence_handle = None
        if self._state.sensor_present:
            await self._clear("sensor NO (dwell)")

    async def close(self) -> None:
        self._cancel_reset_timer()
        self._cancel_absence_check()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
