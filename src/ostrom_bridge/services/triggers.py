"""
Trigger and condition catalogue evaluated against today's price curve.

The catalogue is a closed set of rules keyed by identifier. Triggers are
dispatched to listeners on every refresh cycle and each subscribed flow gates
itself through `TriggerSignal.matches(args)`; only the two "extremum today"
triggers are filtered by the engine before dispatch. Conditions are never
dispatched, they are evaluated on demand.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

import pytz

from ostrom_bridge.exceptions import DataAbsentError, InvalidPriceSeriesError, InvalidTriggerArgumentError
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.price import PricePoint
from ostrom_bridge.models.price_series import PriceSeries
from ostrom_bridge.utils.time_utils import parse_time_of_day, truncate_to_hour

logger = get_logger(__name__)

# Absolute tolerance (ct/kWh) when comparing a price with an extremum
EPSILON = 0.001


# Predicates

def below_average(current: float, average: float, percentage: float) -> bool:
    return current <= average * (1 - percentage / 100)


def above_average(current: float, average: float, percentage: float) -> bool:
    return current >= average * (1 + percentage / 100)


def at_lowest(current: float, lowest: float) -> bool:
    return abs(current - lowest) < EPSILON


def at_highest(current: float, highest: float) -> bool:
    return abs(current - highest) < EPSILON


def among_lowest(series: PriceSeries, n: int, hour: datetime) -> bool:
    return series.n_lowest(n).includes(hour)


def among_highest(series: PriceSeries, n: int, hour: datetime) -> bool:
    return series.n_highest(n).includes(hour)


# Catalogue types

class RuleKind(str, Enum):
    TRIGGER = "trigger"
    CONDITION = "condition"


class RuleFamily(str, Enum):
    WHOLE_DAY = "whole_day"
    EXTREMUM_TODAY = "extremum_today"
    DYNAMIC_WINDOW = "dynamic_window"
    INSTANT = "instant"
    TIME_OF_DAY = "time_of_day"


class ArgumentType(str, Enum):
    INT = "int"
    NUMBER = "number"
    TIME = "time"


@dataclass(frozen=True)
class ArgumentSpec:
    name: str
    type: ArgumentType
    minimum: Optional[float] = None

    def coerce(self, value: Any) -> Any:
        """Validate and convert a raw argument value."""
        try:
            if self.type == ArgumentType.TIME:
                parse_time_of_day(value)
                return value
            if isinstance(value, bool):
                raise ValueError("booleans are not numbers")
            if self.type == ArgumentType.INT:
                number = float(value)
                if not number.is_integer():
                    raise ValueError("expected a whole number")
                number = int(number)
            else:
                number = float(value)
        except (TypeError, ValueError) as e:
            raise InvalidTriggerArgumentError(f"Invalid value for '{self.name}': {value!r} ({e})")

        if self.minimum is not None and number < self.minimum:
            raise InvalidTriggerArgumentError(f"'{self.name}' must be at least {self.minimum}, got {number}")
        return number


HOURS = ArgumentSpec("hours", ArgumentType.INT, minimum=1)
PERCENTAGE = ArgumentSpec("percentage", ArgumentType.NUMBER, minimum=0)
RANKED_HOURS = ArgumentSpec("ranked_hours", ArgumentType.INT, minimum=1)
PRICE = ArgumentSpec("price", ArgumentType.NUMBER)
START_TIME = ArgumentSpec("start_time", ArgumentType.TIME)
END_TIME = ArgumentSpec("end_time", ArgumentType.TIME)


@dataclass(frozen=True)
class EvaluationContext:
    """Everything a predicate may look at during one refresh cycle."""
    hour: datetime
    current: PricePoint
    today: PriceSeries
    tz: Any = pytz.UTC

    @property
    def price(self) -> float:
        return self.current.net_price

    def next_hours(self, hours: int) -> PriceSeries:
        return self.today.windowed(self.hour, hours)


Predicate = Callable[[EvaluationContext, Mapping[str, Any]], bool]


@dataclass(frozen=True)
class TriggerRule:
    id: str
    kind: RuleKind
    family: RuleFamily
    title: str
    predicate: Predicate
    arguments: Tuple[ArgumentSpec, ...] = ()

    @property
    def prefiltered(self) -> bool:
        """Whether the engine checks the predicate itself before dispatching."""
        return self.family == RuleFamily.EXTREMUM_TODAY

    def validate(self, args: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        args = args or {}
        validated = {}
        for argument in self.arguments:
            if argument.name not in args or args[argument.name] is None:
                raise InvalidTriggerArgumentError(f"Missing argument '{argument.name}' for '{self.id}'")
            validated[argument.name] = argument.coerce(args[argument.name])
        return validated


def _rule(rule_id, kind, family, title, predicate, *arguments) -> TriggerRule:
    return TriggerRule(rule_id, kind, family, title, predicate, tuple(arguments))


CATALOGUE: Dict[str, TriggerRule] = {rule.id: rule for rule in [
    # Whole day
    _rule("price_changed", RuleKind.TRIGGER, RuleFamily.WHOLE_DAY,
          "The price changed",
          lambda ctx, args: True),
    _rule("price_below_average_today", RuleKind.TRIGGER, RuleFamily.WHOLE_DAY,
          "The price is [percentage]% below today's average",
          lambda ctx, args: below_average(ctx.price, ctx.today.average(), args["percentage"]),
          PERCENTAGE),
    _rule("price_above_average_today", RuleKind.TRIGGER, RuleFamily.WHOLE_DAY,
          "The price is [percentage]% above today's average",
          lambda ctx, args: above_average(ctx.price, ctx.today.average(), args["percentage"]),
          PERCENTAGE),
    _rule("price_among_lowest_today", RuleKind.TRIGGER, RuleFamily.WHOLE_DAY,
          "The price is among today's [ranked_hours] cheapest hours",
          lambda ctx, args: among_lowest(ctx.today, args["ranked_hours"], ctx.hour),
          RANKED_HOURS),
    _rule("price_among_highest_today", RuleKind.TRIGGER, RuleFamily.WHOLE_DAY,
          "The price is among today's [ranked_hours] most expensive hours",
          lambda ctx, args: among_highest(ctx.today, args["ranked_hours"], ctx.hour),
          RANKED_HOURS),

    # Extremum today
    _rule("price_lowest_today", RuleKind.TRIGGER, RuleFamily.EXTREMUM_TODAY,
          "The price is at today's lowest",
          lambda ctx, args: at_lowest(ctx.price, ctx.today.lowest())),
    _rule("price_highest_today", RuleKind.TRIGGER, RuleFamily.EXTREMUM_TODAY,
          "The price is at today's highest",
          lambda ctx, args: at_highest(ctx.price, ctx.today.highest())),

    # Dynamic window
    _rule("price_below_average_next_hours", RuleKind.TRIGGER, RuleFamily.DYNAMIC_WINDOW,
          "The price is [percentage]% below the average of the next [hours] hours",
          lambda ctx, args: below_average(ctx.price, ctx.next_hours(args["hours"]).average(), args["percentage"]),
          HOURS, PERCENTAGE),
    _rule("price_above_average_next_hours", RuleKind.TRIGGER, RuleFamily.DYNAMIC_WINDOW,
          "The price is [percentage]% above the average of the next [hours] hours",
          lambda ctx, args: above_average(ctx.price, ctx.next_hours(args["hours"]).average(), args["percentage"]),
          HOURS, PERCENTAGE),
    _rule("price_lowest_next_hours", RuleKind.TRIGGER, RuleFamily.DYNAMIC_WINDOW,
          "The price is the lowest of the next [hours] hours",
          lambda ctx, args: at_lowest(ctx.price, ctx.next_hours(args["hours"]).lowest()),
          HOURS),
    _rule("price_highest_next_hours", RuleKind.TRIGGER, RuleFamily.DYNAMIC_WINDOW,
          "The price is the highest of the next [hours] hours",
          lambda ctx, args: at_highest(ctx.price, ctx.next_hours(args["hours"]).highest()),
          HOURS),
    _rule("price_among_lowest_next_hours", RuleKind.TRIGGER, RuleFamily.DYNAMIC_WINDOW,
          "The price is among the [ranked_hours] cheapest of the next [hours] hours",
          lambda ctx, args: among_lowest(ctx.next_hours(args["hours"]), args["ranked_hours"], ctx.hour),
          HOURS, RANKED_HOURS),
    _rule("price_among_highest_next_hours", RuleKind.TRIGGER, RuleFamily.DYNAMIC_WINDOW,
          "The price is among the [ranked_hours] most expensive of the next [hours] hours",
          lambda ctx, args: among_highest(ctx.next_hours(args["hours"]), args["ranked_hours"], ctx.hour),
          HOURS, RANKED_HOURS),

    # Conditions
    _rule("current_price_below", RuleKind.CONDITION, RuleFamily.INSTANT,
          "The current price is below [price]",
          lambda ctx, args: ctx.price < args["price"],
          PRICE),
    _rule("current_price_above", RuleKind.CONDITION, RuleFamily.INSTANT,
          "The current price is above [price]",
          lambda ctx, args: ctx.price > args["price"],
          PRICE),
    _rule("price_among_lowest_between", RuleKind.CONDITION, RuleFamily.TIME_OF_DAY,
          "The price is among the [ranked_hours] cheapest hours between [start_time] and [end_time]",
          lambda ctx, args: among_lowest(
              ctx.today.between(args["start_time"], args["end_time"], ctx.tz), args["ranked_hours"], ctx.hour),
          RANKED_HOURS, START_TIME, END_TIME),
    _rule("price_among_highest_between", RuleKind.CONDITION, RuleFamily.TIME_OF_DAY,
          "The price is among the [ranked_hours] most expensive hours between [start_time] and [end_time]",
          lambda ctx, args: among_highest(
              ctx.today.between(args["start_time"], args["end_time"], ctx.tz), args["ranked_hours"], ctx.hour),
          RANKED_HOURS, START_TIME, END_TIME),
]}


@dataclass
class TriggerSignal:
    """A trigger fired for one refresh cycle."""
    rule_id: str
    tokens: Dict[str, float]
    context: EvaluationContext
    engine: "TriggerEngine" = field(repr=False)

    def matches(self, args: Optional[Mapping[str, Any]] = None) -> bool:
        """Gate for a subscribed flow with its own arguments."""
        return self.engine.evaluate(self.rule_id, args or {}, self.context)


Listener = Callable[[TriggerSignal], Awaitable[None]]


class TriggerEngine:
    """Evaluates catalogue rules and dispatches triggers to listeners."""

    def __init__(self, catalogue: Mapping[str, TriggerRule] = None):
        self._catalogue = dict(catalogue if catalogue is not None else CATALOGUE)
        self._listeners: List[Listener] = []

    @property
    def rules(self) -> List[TriggerRule]:
        return list(self._catalogue.values())

    def get_rule(self, rule_id: str) -> TriggerRule:
        try:
            return self._catalogue[rule_id]
        except KeyError:
            raise InvalidTriggerArgumentError(f"Unknown trigger '{rule_id}'")

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def evaluate(self, rule_id: str, args: Optional[Mapping[str, Any]], context: EvaluationContext) -> bool:
        """
        Evaluate one rule against the cycle context.

        A window that cannot be built for the current hour counts as no match.

        Raises:
            InvalidTriggerArgumentError: For unknown rules and bad arguments
        """
        rule = self.get_rule(rule_id)
        validated = rule.validate(args)

        try:
            return bool(rule.predicate(context, validated))
        except (DataAbsentError, InvalidPriceSeriesError) as e:
            logger.warning("Trigger window unavailable", rule_id=rule_id, error=str(e))
            return False

    async def dispatch(self, context: EvaluationContext) -> List[str]:
        """
        Fire every trigger for this cycle and return the ids that were dispatched.
        """
        tokens = {
            "price": context.price,
            "lowest": context.today.lowest(),
            "highest": context.today.highest(),
            "average": context.today.average(),
        }

        dispatched = []
        for rule in self._catalogue.values():
            if rule.kind != RuleKind.TRIGGER:
                continue
            if rule.prefiltered and not self.evaluate(rule.id, {}, context):
                continue

            signal = TriggerSignal(rule.id, dict(tokens), context, self)
            for listener in self._listeners:
                try:
                    await listener(signal)
                except Exception as e:
                    logger.error("Trigger listener failed", rule_id=rule.id, error=str(e))
            dispatched.append(rule.id)

        logger.debug("Dispatched triggers", hour=context.hour.isoformat(), count=len(dispatched))
        return dispatched


def build_context(today: PriceSeries, now: datetime, tz=pytz.UTC) -> EvaluationContext:
    """
    Context for the hour containing `now`.

    Raises:
        DataAbsentError: If today's series has no price for the current hour
    """
    hour = truncate_to_hour(now)
    current = today.price_at(hour)
    if current is None:
        raise DataAbsentError(f"No price available for the current hour {hour.isoformat()}")
    return EvaluationContext(hour=hour, current=current, today=today, tz=tz)
