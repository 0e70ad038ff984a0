from prometheus_client import Counter, Gauge, Histogram


class ReservationMetrics:
    """
    Seat Reservation Core Metrics Collector

    Tracks hold/booking outcomes, hold expirations and seat event fan-out
    """

    def __init__(self):
        # ========== Hold Metrics ==========
        self.hold_requests = Counter(
            'seat_hold_requests_total',
            'Total seat hold requests',
            ['result'],  # result: success/unavailable/invalid
        )

        self.hold_duration = Histogram(
            'seat_hold_duration_seconds',
            'Seat hold processing time',
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0],
        )

        self.hold_releases = Counter(
            'seat_hold_releases_total',
            'Holds released without conversion to a booking',
            ['reason'],  # reason: explicit/expired
        )

        self.active_holds = Gauge('seat_holds_active', 'Holds armed for expiry')

        # ========== Booking Metrics ==========
        self.booking_confirmations = Counter(
            'booking_confirmations_total',
            'Total booking confirmation attempts',
            ['result'],  # result: success/hold_expired/payment_declined
        )

        self.booking_cancellations = Counter(
            'booking_cancellations_total',
            'Total booking cancellation attempts',
            ['result'],  # result: success/window_closed
        )

        # ========== Fan-out Metrics ==========
        self.seat_events_delivered = Counter(
            'seat_events_delivered_total', 'Seat events delivered to subscribers'
        )

        self.seat_events_dropped = Counter(
            'seat_events_dropped_total', 'Seat events dropped because a subscriber buffer was full'
        )

        self.stream_subscribers = Gauge(
            'seat_stream_subscribers', 'Open seat map subscriptions'
        )

    # ========== Helper Methods ==========

    def record_hold_request(self, *, result: str, duration: float):
        self.hold_requests.labels(result=result).inc()
        self.hold_duration.observe(duration)

    def record_hold_release(self, *, reason: str):
        self.hold_releases.labels(reason=reason).inc()

    def record_booking_confirmation(self, *, result: str):
        self.booking_confirmations.labels(result=result).inc()

    def record_booking_cancellation(self, *, result: str):
        self.booking_cancellations.labels(result=result).inc()

    def record_fanout(self, *, delivered: int, dropped: int):
        if delivered:
            self.seat_events_delivered.inc(delivered)
        if dropped:
            self.seat_events_dropped.inc(dropped)


# Global metrics instance
metrics = ReservationMetrics()
