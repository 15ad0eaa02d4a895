import threading
import time

import dns.edns
import dns.message
import dns.rrset
import pytest

from routedns.dedup import RequestDedup
from routedns.resolver import ClientInfo, Resolver


class SlowResolver(Resolver):
    ident = "slow"

    def __init__(self, delay=0.5, answer=True, fail=False):
        self.delay = delay
        self.answer = answer
        self.fail = fail
        self._lock = threading.Lock()
        self.hits = 0

    def resolve(self, q, ci):
        with self._lock:
            self.hits += 1
        time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("failed")
        if not self.answer:
            return None
        a = dns.message.make_response(q)
        a.answer.append(dns.rrset.from_text(q.question[0].name, 60, "IN", "A", "192.0.2.1"))
        return a


def _run_concurrently(fn, count):
    results = [None] * count
    errors = [None] * count

    def worker(i):
        try:
            results[i] = fn(i)
        except Exception as e:
            errors[i] = e

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def test_request_dedup():
    upstream = SlowResolver(delay=1.0, answer=False)
    g = RequestDedup("test-dedup", upstream)
    q = dns.message.make_query("example.com.", "A")
    results, errors = _run_concurrently(lambda i: g.resolve(q, ClientInfo()), 10)
    assert errors == [None] * 10
    assert results == [None] * 10
    assert upstream.hits == 1


def test_duplicates_get_copies_of_answer():
    upstream = SlowResolver()
    g = RequestDedup("dedup-copies", upstream)
    q = dns.message.make_query("example.com.", "A")
    results, errors = _run_concurrently(lambda i: g.resolve(q, ClientInfo()), 5)
    assert errors == [None] * 5
    assert upstream.hits == 1
    assert len({id(r) for r in results}) == 5
    for r in results:
        assert r.answer[0][0].to_text() == "192.0.2.1"


def test_error_shared_with_waiters():
    upstream = SlowResolver(fail=True)
    g = RequestDedup("dedup-error", upstream)
    q = dns.message.make_query("example.com.", "A")
    _, errors = _run_concurrently(lambda i: g.resolve(q, ClientInfo()), 4)
    assert upstream.hits == 1
    assert all(isinstance(e, RuntimeError) for e in errors)


def test_different_ecs_not_merged():
    upstream = SlowResolver()
    g = RequestDedup("dedup-ecs", upstream)

    def query(i):
        q = dns.message.make_query("example.com.", "A")
        q.use_edns(0, payload=4096, options=[dns.edns.ECSOption(f"192.0.{i}.0", 24)])
        return g.resolve(q, ClientInfo())

    _, errors = _run_concurrently(query, 3)
    assert errors == [None] * 3
    assert upstream.hits == 3


def test_sequential_queries_each_hit_upstream():
    upstream = SlowResolver(delay=0)
    g = RequestDedup("dedup-seq", upstream)
    q = dns.message.make_query("example.com.", "A")
    g.resolve(q, ClientInfo())
    a = g.resolve(q, ClientInfo())
    assert upstream.hits == 2
    assert str(a.question[0].name) == "example.com."


def test_failure_does_not_block_later_queries():
    upstream = SlowResolver(delay=0, fail=True)
    g = RequestDedup("dedup-retry", upstream)
    q = dns.message.make_query("example.com.", "A")
    with pytest.raises(RuntimeError):
        g.resolve(q, ClientInfo())
    upstream.fail = False
    assert g.resolve(q, ClientInfo()) is not None
    assert upstream.hits == 2