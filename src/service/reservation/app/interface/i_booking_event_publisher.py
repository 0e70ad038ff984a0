from abc import ABC, abstractmethod

from src.service.reservation.domain.domain_event.booking_events import BookingDomainEvent


class IBookingEventPublisher(ABC):
    @abstractmethod
    def publish(self, *, event: BookingDomainEvent) -> None:
        """Enqueue for the mailer collaborator. Must never block the booking path."""
        pass
