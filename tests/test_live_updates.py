from __future__ import annotations

import threading
import time
import unittest
from decimal import Decimal

from smartshelf.services.locks import KeyedLock
from smartshelf.services.notification_service import NotificationPublisher


class NotificationPublisherTests(unittest.TestCase):
    def test_publish_reaches_every_subscriber_with_plain_data(self) -> None:
        publisher = NotificationPublisher()
        first, second = [], []
        publisher.subscribe(lambda event, data: first.append((event, data)))
        publisher.subscribe(lambda event, data: second.append((event, data)))

        delivered = publisher.publish('inventory:updated', {'price': Decimal('1.50')})

        self.assertEqual(delivered, 2)
        self.assertEqual(first, [('inventory:updated', {'price': '1.50'})])
        self.assertEqual(second, first)

    def test_unsubscribe_stops_delivery(self) -> None:
        publisher = NotificationPublisher()
        received = []
        unsubscribe = publisher.subscribe(lambda event, data: received.append(event))
        unsubscribe()

        self.assertEqual(publisher.publish('pallet:created', {}), 0)
        self.assertEqual(received, [])
        self.assertEqual(publisher.subscriber_count, 0)

    def test_failing_subscriber_is_dropped(self) -> None:
        publisher = NotificationPublisher()
        received = []

        def broken(event, data):
            raise ConnectionError('socket closed')

        publisher.subscribe(broken)
        publisher.subscribe(lambda event, data: received.append(event))

        with self.assertLogs('smartshelf.services.notification_service', level='WARNING'):
            self.assertEqual(publisher.publish('inventory:created', {}), 1)
        self.assertEqual(publisher.subscriber_count, 1)
        self.assertEqual(received, ['inventory:created'])


class KeyedLockTests(unittest.TestCase):
    def test_same_key_is_serialized(self) -> None:
        locks = KeyedLock()
        active = []
        overlaps = []

        def worker() -> None:
            with locks.hold('item-1'):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(overlaps, [])
        self.assertEqual(len(locks), 0)

    def test_different_keys_do_not_block(self) -> None:
        locks = KeyedLock()
        with locks.hold('a'):
            acquired = threading.Event()

            def other() -> None:
                with locks.hold('b'):
                    acquired.set()

            thread = threading.Thread(target=other)
            thread.start()
            self.assertTrue(acquired.wait(timeout=1))
            thread.join()
            self.assertEqual(len(locks), 1)


if __name__ == '__main__':
    unittest.main()
