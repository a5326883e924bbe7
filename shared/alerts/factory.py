"""
Alert factory.

Builds an Alert from a rule match and the episode it matched: content-derived
identity, rendered message, contextual enrichment, criticality score and
optional severity auto-scaling. Any failure yields a minimal fallback alert so
one bad equipment never blocks the rest of a batch.
"""

import re
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

from shared.alerts.config import AlertFactorySettings, get_alert_factory_settings
from shared.config.logging import get_logger
from shared.config.settings import merge_settings
from shared.exceptions import AlertGenerationError, ValidationError
from shared.observability import metrics
from shared.schemas.alerts import (
    SEVERITY_ORDER,
    Alert,
    EquipmentContext,
    RuleMatch,
    Severity,
    parse_severity,
    severity_rank,
)
from shared.utils.datetime_utils import (
    format_duration,
    format_time_range,
    get_utc_now,
    to_epoch_ms,
)
from shared.utils.hashing import stable_hash

logger = get_logger(__name__)

DEFAULT_GROUP_TEMPLATES: dict[str, str] = {
    "ALTA_PRESSAO": "{equipment} (Alta Pressão) - {event} for {duration}",
    "AUTO_VACUO": "{equipment} (Auto Vácuo) - {event} for {duration}",
    "HIPER_VACUO": "{equipment} (Hiper Vácuo) - {event} for {duration}",
    "BROOK": "{equipment} (Brook) - {event} for {duration}",
    "TANQUE": "{equipment} (Tanque) - {event} for {duration}",
    "CAMINHAO": "{equipment} (Caminhão) - {event} for {duration}",
}

# Portuguese placeholder names accepted in templates
PLACEHOLDER_ALIASES: dict[str, str] = {
    "equipamento": "equipment",
    "evento": "event",
    "tempo": "duration",
    "duracao": "duration",
    "periodo": "time_range",
    "grupos": "groups",
    "tipo": "event_type",
    "registros": "record_count",
    "data": "date",
    "hora": "time",
    "gravidade": "severity",
    "grupo_principal": "primary_group",
    "total_grupos": "group_count",
}

_UNKNOWN_PLACEHOLDER = re.compile(r"\{[^}]+\}")

_EQUIPMENT_ACCENTS = (
    ("CAMINHAO", "CAMINHÃO"),
    ("VACUO", "VÁCUO"),
    ("PRESSAO", "PRESSÃO"),
)


def format_equipment_name(name: str | None) -> str:
    """
    Format an equipment name for display.

    Args:
        name: Raw equipment name

    Returns:
        Name with accents restored on known words
    """
    if not name:
        return "Unknown equipment"

    for plain, accented in _EQUIPMENT_ACCENTS:
        name = name.replace(plain, accented)
    return name


def generate_unique_id(
    equipment: str,
    rule_id: str | None,
    identifier: str | None,
    start_time: datetime | None,
    end_time: datetime | None,
    consolidated: bool,
) -> str:
    """
    Derive the deduplication identity of an alert.

    Identical inputs always yield the same value, so re-ingesting an episode
    never produces a second alert downstream.

    Args:
        equipment: Equipment name
        rule_id: Rule identifier
        identifier: Episode identifier ("unknown" when missing)
        start_time: Episode start
        end_time: Episode end
        consolidated: Episode consolidated flag

    Returns:
        16-character hex identity
    """
    return stable_hash(
        equipment,
        rule_id,
        identifier if identifier is not None else "unknown",
        start_time,
        end_time,
        bool(consolidated),
    )


def render_template(template: str, values: Mapping[str, str], strip_unknown: bool = False) -> str:
    """
    Substitute {placeholder} tokens by literal replacement.

    Args:
        template: Message template
        values: Placeholder values keyed by English name
        strip_unknown: Remove placeholders left without a value

    Returns:
        Rendered message
    """
    message = template
    for name, value in values.items():
        message = message.replace(f"{{{name}}}", value)
    for alias, name in PLACEHOLDER_ALIASES.items():
        if name in values:
            message = message.replace(f"{{{alias}}}", values[name])

    if strip_unknown:
        message = _UNKNOWN_PLACEHOLDER.sub("", message)

    return message.strip()


def _read(source: Any, name: str, default: Any = None) -> Any:
    """Read a field from a model, object or mapping (snake_case or camelCase)."""
    if source is None:
        return default
    if isinstance(source, Mapping):
        if name in source:
            return source[name]
        head, *rest = name.split("_")
        camel = head + "".join(part.title() for part in rest)
        return source.get(camel, default)
    return getattr(source, name, default)


@dataclass
class AlertFactoryStats:
    """Running counters of an AlertFactory."""

    alerts_generated: int = 0
    templates_used: int = 0
    contextual_info_added: int = 0
    error_count: int = 0
    average_generation_time_ms: float = 0.0


class AlertFactory:
    """
    Factory that turns rule matches into alerts.

    Message templates are chosen per equipment group when one is registered
    for the primary group, else from the rule message, else from the default
    template.
    """

    def __init__(self, settings: AlertFactorySettings | None = None):
        """
        Initialize alert factory.

        Args:
            settings: Alert factory settings (optional)
        """
        self.settings = settings or get_alert_factory_settings()
        self.group_templates: dict[str, str] = dict(DEFAULT_GROUP_TEMPLATES)
        self.stats = AlertFactoryStats()
        logger.info(
            "alert_factory_initialized",
            templating=self.settings.enable_templating,
            contextual=self.settings.enable_contextual_info,
            severity_scaling=self.settings.enable_severity_scaling,
        )

    def build(
        self,
        rule_match: RuleMatch | Mapping[str, Any],
        equipment_name: str,
        episode: Any = None,
        equipment_context: EquipmentContext | Mapping[str, Any] | None = None,
    ) -> Alert:
        """
        Build the alert for one rule match.

        Args:
            rule_match: Matched rule
            equipment_name: Equipment name
            episode: Consolidated episode (or normalized event) that matched
            equipment_context: Groups and recent records of the equipment

        Returns:
            Alert, or a fallback alert if assembly failed
        """
        started = time.perf_counter()
        self.stats.alerts_generated += 1

        try:
            rule = self._coerce_rule_match(rule_match)
            if not equipment_name:
                raise AlertGenerationError("Equipment name is required", rule_id=rule.rule_id)
            context = self._coerce_context(equipment_context)
            now = get_utc_now()

            data: dict[str, Any] = {
                "id": self._generate_alert_id(now),
                "equipment": equipment_name,
                "equipment_groups": list(context.groups),
                "rule_id": rule.rule_id,
                "rule_name": rule.name,
                "rule_type": rule.type,
                "severity": rule.severity,
                "timestamp": now,
            }
            self._add_event_information(data, episode)
            data["unique_id"] = generate_unique_id(
                equipment_name,
                rule.rule_id,
                data["event_identifier"],
                data["start_time"],
                data["end_time"],
                data["consolidated"],
            )
            data["message"] = self._generate_message(rule, data, now)

            if self.settings.enable_contextual_info:
                self._add_contextual_information(data, context)

            data["criticality_score"] = self.calculate_criticality(data)

            if self.settings.enable_severity_scaling:
                self._scale_severity(data)

            data["metadata"] = self._generate_metadata(rule, episode, context, now)
            alert = Alert(**data)

        except Exception as e:
            self.stats.error_count += 1
            metrics.alert_fallbacks_total.inc()
            logger.error(
                "alert_generation_failed",
                equipment=str(equipment_name),
                rule_id=str(_read(rule_match, "rule_id", "")),
                error=str(e),
            )
            return self._fallback_alert(rule_match, equipment_name, e)

        elapsed_ms = (time.perf_counter() - started) * 1000
        n = self.stats.alerts_generated
        self.stats.average_generation_time_ms += (
            elapsed_ms - self.stats.average_generation_time_ms
        ) / n
        metrics.alerts_generated_total.labels(severity=alert.severity).inc()

        logger.debug(
            "alert_generated",
            alert_id=alert.id,
            equipment=equipment_name,
            rule_id=alert.rule_id,
            severity=alert.severity,
        )
        return alert

    def calculate_criticality(self, data: Mapping[str, Any]) -> int:
        """
        Calculate the 0-10 criticality score.

        Severity contributes its ordinal (low=1 .. critical=4, medium when
        unknown). Long duration adds 2 above 60 minutes or 1 above 30,
        consolidation adds 1, utilization above 80% adds 1 and event frequency
        above 50% adds 1.

        Args:
            data: Alert fields

        Returns:
            Score clamped to [0, 10]
        """
        score = severity_rank(data.get("severity")) or severity_rank(Severity.MEDIUM)

        duration = data.get("duration_minutes") or 0
        if duration > 60:
            score += 2
        elif duration > 30:
            score += 1

        if data.get("consolidated"):
            score += 1

        utilization = data.get("utilization_rate")
        if utilization is not None and utilization > 80:
            score += 1

        frequency = data.get("event_frequency")
        if frequency is not None and frequency > 50:
            score += 1

        return min(10, max(0, score))

    def add_group_template(self, group_id: str, template: str) -> None:
        """
        Register a message template for an equipment group.

        Args:
            group_id: Group tag
            template: Message template

        Raises:
            ValidationError: If group_id or template is empty
        """
        if not group_id or not template:
            raise ValidationError("group_id and template are required", field="group_id")

        self.group_templates[group_id] = template
        logger.debug("group_template_added", group_id=group_id)

    def remove_group_template(self, group_id: str) -> bool:
        removed = self.group_templates.pop(group_id, None) is not None
        if removed:
            logger.debug("group_template_removed", group_id=group_id)
        return removed

    def get_group_template(self, group_id: str) -> str | None:
        return self.group_templates.get(group_id)

    def update_settings(self, **changes: Any) -> AlertFactorySettings:
        """
        Apply a validated settings update.

        Args:
            **changes: Field overrides

        Returns:
            The settings now in effect

        Raises:
            ConfigurationError: If the update is invalid
        """
        self.settings = merge_settings(self.settings, changes)
        logger.info("alert_factory_settings_updated", changes=sorted(changes))
        return self.settings

    def get_metrics(self) -> dict[str, Any]:
        """Get factory counters and feature flags."""
        return {
            **asdict(self.stats),
            "templates_configured": len(self.group_templates),
            "templating": self.settings.enable_templating,
            "contextual": self.settings.enable_contextual_info,
            "severity_scaling": self.settings.enable_severity_scaling,
        }

    def reset_metrics(self) -> None:
        self.stats = AlertFactoryStats()

    def _coerce_rule_match(self, rule_match: RuleMatch | Mapping[str, Any]) -> RuleMatch:
        if isinstance(rule_match, RuleMatch):
            return rule_match
        if isinstance(rule_match, Mapping):
            data = dict(rule_match)
            if "ruleId" not in data and "rule_id" not in data and "id" in data:
                data["rule_id"] = data.pop("id")
            return RuleMatch.model_validate(data)
        return RuleMatch.model_validate(rule_match, from_attributes=True)

    def _coerce_context(
        self,
        equipment_context: EquipmentContext | Mapping[str, Any] | None,
    ) -> EquipmentContext:
        if equipment_context is None:
            return EquipmentContext()
        if isinstance(equipment_context, EquipmentContext):
            return equipment_context
        return EquipmentContext.model_validate(equipment_context)

    def _generate_alert_id(self, now: datetime) -> str:
        return f"alert_{to_epoch_ms(now)}_{uuid4().hex[:9]}"

    def _add_event_information(self, data: dict[str, Any], episode: Any) -> None:
        """
        Copy episode fields onto the alert.

        Args:
            data: Alert fields, updated in place
            episode: Episode, normalized event, mapping or None
        """
        identifier = _read(episode, "identifier")
        duration_minutes = _read(episode, "duration_minutes") or 0.0
        start_time = _read(episode, "start_time")
        end_time = _read(episode, "end_time")

        data["event_type"] = str(_read(episode, "kind") or "unknown")
        data["event_identifier"] = None if identifier is None else str(identifier)
        data["duration_minutes"] = duration_minutes
        data["duration"] = format_duration(duration_minutes)
        data["start_time"] = start_time
        data["end_time"] = end_time
        data["time_range"] = format_time_range(start_time, end_time)
        data["consolidated"] = bool(_read(episode, "consolidated", False))
        data["record_count"] = _read(episode, "record_count") or 1

    def _generate_message(self, rule: RuleMatch, data: dict[str, Any], now: datetime) -> str:
        """
        Select a template and render the alert message.

        Args:
            rule: Matched rule
            data: Alert fields
            now: Generation time

        Returns:
            Rendered message
        """
        template = rule.message or self.settings.default_template

        groups = data["equipment_groups"]
        if self.settings.enable_group_specific_messages and groups:
            group_template = self.get_group_template(groups[0])
            if group_template:
                template = group_template
                self.stats.templates_used += 1

        if not self.settings.enable_templating:
            return template

        return render_template(
            template,
            self._placeholder_values(data, now),
            strip_unknown=self.settings.strip_unknown_placeholders,
        )

    def _placeholder_values(self, data: Mapping[str, Any], now: datetime) -> dict[str, str]:
        event_type = data["event_type"]
        identifier = data["event_identifier"]
        groups = data["equipment_groups"]
        return {
            "equipment": format_equipment_name(data["equipment"]),
            "event": identifier or "event",
            "status": (identifier or "") if event_type == "status" else "",
            "apontamento": (identifier or "") if event_type == "apontamento" else "",
            "duration": data["duration"],
            "time_range": data["time_range"],
            "groups": ", ".join(groups),
            "event_type": event_type,
            "record_count": str(data["record_count"]),
            "date": now.strftime("%d/%m/%Y"),
            "time": now.strftime("%H:%M:%S"),
            "severity": str(data["severity"]),
            "primary_group": groups[0] if groups else "",
            "group_count": str(len(groups)),
        }

    def _add_contextual_information(self, data: dict[str, Any], context: EquipmentContext) -> None:
        """
        Add recent status and apontamento context.

        Args:
            data: Alert fields, updated in place
            context: Equipment context
        """
        sample_size = self.settings.context_sample_size

        recent_statuses = context.status[-sample_size:]
        if recent_statuses:
            values = [_read(s, "status") or _read(s, "identifier") for s in recent_statuses]
            data["recent_statuses"] = [str(v) for v in values if v is not None]
            on_count = sum(1 for v in values if v == "on")
            data["utilization_rate"] = round(on_count / len(recent_statuses) * 100)

        recent_apontamentos = context.apontamentos[-sample_size:]
        if recent_apontamentos:
            categories = [
                _read(a, "Categoria Demora") or _read(a, "categoria") for a in recent_apontamentos
            ]
            data["recent_event_categories"] = list(
                dict.fromkeys(str(c) for c in categories if c is not None)
            )
            if data["event_identifier"]:
                matching = sum(1 for c in categories if c == data["event_identifier"])
                data["event_frequency"] = round(matching / len(recent_apontamentos) * 100)

        self.stats.contextual_info_added += 1

    def _scale_severity(self, data: dict[str, Any]) -> None:
        """
        Move severity one step up or down based on episode context.

        Escalates for duration above 120 minutes, a consolidated episode of
        more than 10 records or utilization above 90%. De-escalates for
        duration below 5 minutes or utilization below 10%. When both apply,
        severity is left unchanged.

        Args:
            data: Alert fields, updated in place
        """
        duration = data.get("duration_minutes") or 0
        utilization = data.get("utilization_rate")

        scale_up = (
            duration > 120
            or (data.get("consolidated") and data.get("record_count", 1) > 10)
            or (utilization is not None and utilization > 90)
        )
        scale_down = duration < 5 or (utilization is not None and utilization < 10)

        if scale_up == scale_down:
            return

        original = parse_severity(data["severity"])
        index = SEVERITY_ORDER.index(original.value)
        index = min(index + 1, len(SEVERITY_ORDER) - 1) if scale_up else max(index - 1, 0)

        if SEVERITY_ORDER[index] != original.value:
            data["severity"] = SEVERITY_ORDER[index]
            data["severity_scaled"] = True
            data["original_severity"] = original.value

    def _generate_metadata(
        self,
        rule: RuleMatch,
        episode: Any,
        context: EquipmentContext,
        now: datetime,
    ) -> dict[str, Any]:
        return {
            "generatedAt": now.isoformat(),
            "ruleConditions": rule.conditions,
            "eventData": {
                "type": str(_read(episode, "kind") or "unknown"),
                "duration": _read(episode, "duration_minutes") or 0.0,
                "consolidated": bool(_read(episode, "consolidated", False)),
                "originalRecords": _read(episode, "record_count") or 1,
            },
            "equipmentInfo": {
                "groups": list(context.groups),
                "hasStatusData": bool(context.status),
                "hasApontamentos": bool(context.apontamentos),
            },
            "features": {
                "templating": self.settings.enable_templating,
                "contextual": self.settings.enable_contextual_info,
                "severityScaling": self.settings.enable_severity_scaling,
            },
        }

    def _fallback_alert(self, rule_match: Any, equipment_name: Any, error: Exception) -> Alert:
        """
        Build the minimal alert substituted for a failed build.

        Args:
            rule_match: Rule match as given by the caller
            equipment_name: Equipment name as given by the caller
            error: Failure that triggered the fallback

        Returns:
            Alert with severity medium and event type "error"
        """
        now = get_utc_now()
        equipment = str(equipment_name) if equipment_name else "unknown"
        rule_id = _read(rule_match, "rule_id") or _read(rule_match, "id")
        rule_id = None if rule_id is None else str(rule_id)
        rule_name = _read(rule_match, "name")

        return Alert(
            id=self._generate_alert_id(now),
            unique_id=stable_hash(equipment, rule_id, now),
            equipment=equipment,
            rule_id=rule_id,
            rule_name=None if rule_name is None else str(rule_name),
            severity=Severity.MEDIUM,
            message=f"{format_equipment_name(equipment)} - alert generation failed",
            event_type="error",
            timestamp=now,
            error=True,
            metadata={
                "generatedAt": now.isoformat(),
                "fallback": True,
                "originalError": str(error),
            },
        )
