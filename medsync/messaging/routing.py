"""Topic subscriptions and bus rules wiring the pipeline together."""

from medsync.config import Settings
from medsync.constants import APPOINTMENT_CREATED, COMPLETION_DETAIL_TYPE, SUPPORTED_COUNTRIES
from medsync.messaging.broker import StreamBroker
from medsync.messaging.event_bus import EventBus, Rule
from medsync.messaging.topic import EventTopic, Subscription


def build_appointment_topic(broker: StreamBroker, settings: Settings) -> EventTopic:
    """
    Build the appointment topic.

    Each country queue only receives created events of its own country.
    """
    subscriptions = [
        Subscription(
            queue=settings.queue_for(country),
            filter_policy={"countryISO": (country,), "eventType": (APPOINTMENT_CREATED,)},
        )
        for country in SUPPORTED_COUNTRIES
    ]
    return EventTopic(broker, settings.appointment_topic, subscriptions)


def build_event_bus(broker: StreamBroker, settings: Settings) -> EventBus:
    """Build the event bus routing completion events to the completion queue."""
    rules = [
        Rule(
            name="appointment-completion-rule",
            target_queue=settings.completion_queue,
            sources=(settings.event_source,),
            detail_types=(COMPLETION_DETAIL_TYPE,),
        )
    ]
    return EventBus(broker, settings.event_bus_name, rules)
