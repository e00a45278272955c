from src.core.config import settings
from src.domain.Interfaces.event_publisher import IEventPublisher

def create_event_publisher() -> IEventPublisher:
    if settings.publisher_backend.lower() == "console":
        from src.infrastructure.Messaging.console_publisher import ConsolePublisher
        return ConsolePublisher()
    else:
        from src.infrastructure.Messaging.kafka_publisher import KafkaPublisher
        from src.infrastructure.Messaging.retry_publisher import RetryPublisher
        return RetryPublisher(
            KafkaPublisher(),
            attempts=settings.publish_retry_attempts,
            base_delay=settings.publish_retry_base_delay,
        )
