"""Ciclo acotado de corrección: se le re-pregunta al modelo con los importes del backend."""
from __future__ import annotations
from kink import di
from ...core.settings import Settings
from ...core.errors import LLMError
from ...core.logging import get_logger
from ...core.parsing import parse_llm_reply
from ...core.prompting import PromptBuilder
from ...ports.interfaces import LLMPort
from ..models import ReconcileResult, RepairResult
from .recalculator import OrderRecalculator
from .summary import build_backend_summary

log = get_logger()

class RepairLoop:
    """Hasta `calc_fix_max_retries` intentos; si ninguno cuadra, resumen determinístico."""

    def __init__(
        self,
        settings: Settings | None = None,
        llm: LLMPort | None = None,
        recalculator: OrderRecalculator | None = None,
        prompts: PromptBuilder | None = None,
    ):
        self.settings = settings if settings is not None else di[Settings]
        if llm is None:
            from ...core.llm_client import LLMClient
            llm = di[LLMClient]
        self.llm = llm
        self.recalculator = recalculator if recalculator is not None else di[OrderRecalculator]
        self.prompts = prompts if prompts is not None else di[PromptBuilder]

    def run(self, tenant_id: str, history: list[dict], mismatched: ReconcileResult) -> RepairResult:
        max_attempts = self.settings.calc_fix_max_retries
        best = mismatched
        estado = None
        for attempt in range(1, max_attempts + 1):
            correction = self.prompts.correction_prompt(order=best.order, attempt=attempt, max_attempts=max_attempts)
            messages = history + [{"role": "user", "content": correction}]
            log.info("repair_attempt", tenant_id=tenant_id, attempt=attempt, max_attempts=max_attempts)
            try:
                raw = self.llm.complete(messages)
            except LLMError as e:
                log.warning("repair_llm_failed", tenant_id=tenant_id, attempt=attempt, error=str(e))
                continue
            reply = parse_llm_reply(raw)
            if reply is None or reply.order is None:
                log.warning("repair_parse_failed", tenant_id=tenant_id, attempt=attempt)
                continue
            estado = reply.estado or estado
            result = self.recalculator.reconcile(tenant_id, reply.order, current=best.order)
            if not result.has_items:
                continue
            best = result
            if not result.mismatch:
                text = reply.error or reply.response or build_backend_summary(result.order)
                log.info("repair_succeeded", tenant_id=tenant_id, attempt=attempt)
                return RepairResult(success=True, attempts=attempt, final_order=result.order,
                                    reply_text=text, estado=estado, delivery=result.delivery)

        log.warning("repair_exhausted", tenant_id=tenant_id, attempts=max_attempts)
        return RepairResult(success=False, attempts=max_attempts, final_order=best.order,
                            reply_text=build_backend_summary(best.order), estado=estado, delivery=best.delivery)
