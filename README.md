# routedns

Building blocks for DNS resolution pipelines. Every component implements the
same `Resolver` interface (`routedns.resolver.Resolver`): its `resolve(q, ci)`
method takes a query (a `dns.message.Message` from dnspython) and a
`ClientInfo`, and returns an answer, or `None` when the query was dropped.
Components wrap other resolvers, so they can be chained into routing trees.

## Installation

    pip install routedns

## What is included

- **Core** (`routedns.resolver`): `Resolver`, `Listener`, `ClientInfo`
  (source IP, DoH path, TLS server name, listener id), `ListenerMetrics`.
- **Routing** (`routedns.route`, `routedns.router`): `Router` with routes made
  by `new_route()`. A route can match on query name (regular expression),
  type, class, source network, DoH path, listener, TLS server name, weekday
  and time of day, and can be inverted with `Route.invert()`.
- **Groups** (`routedns.roundrobin`): `RoundRobin` sends queries to each of
  its resolvers in turn.
- **Query modifiers**: `ECSModifier` with `ecs_modifier_add`,
  `ecs_modifier_add_if_missing`, `ecs_modifier_delete` and
  `ecs_modifier_privacy` (`routedns.ecs`); `EDNS0Modifier` with
  `edns0_modifier_add` and `edns0_modifier_delete` (`routedns.edns0`);
  `Replace` with `ReplaceOperation` to rewrite query names
  (`routedns.replace`).
- **Response modifiers**: `ResponseCollapse` and `ResponseMinimize`
  (`routedns.response`), `TTLModifier` with the `ttl_select_*` functions
  (`routedns.ttl`), `TruncateRetry` (`routedns.truncate`), `FastestTCP`
  (`routedns.fastest_tcp`), which orders A/AAAA answers by TCP connect time.
- **Traffic control and logging**: `RateLimiter` (`routedns.ratelimit`),
  `RequestDedup` (`routedns.dedup`), `QueryLogResolver` in text or JSON
  (`routedns.querylog`), `SyslogResolver` (`routedns.syslogger`).
- **Transport**: `Pipeline` (`routedns.pipeline`) sends many queries over one
  upstream connection opened on demand through a `DNSDialer` that returns
  `DNSConnection` objects.
- **Utilities**: RFC 8467 padding (`pad_query`, `pad_answer`,
  `strip_padding` in `routedns.padding`), `IPBlocklistTrie`
  (`routedns.iptrie`), Extended DNS Error options from templates
  (`new_edns0_ede_template` in `routedns.edns0ede`, `Template` in
  `routedns.template`), message helpers such as `nxdomain`, `servfail`,
  `refused`, `ptr` and `set_udp_size` (`routedns.message`), endpoint
  validation and `address_with_default` (`routedns.validate`), and named
  counters (`get_var_int`, `get_var_map` in `routedns.metrics`).

## Example

```python
import dns.message
import dns.rrset

from routedns.message import nxdomain
from routedns.resolver import ClientInfo, Resolver
from routedns.roundrobin import RoundRobin
from routedns.route import new_route
from routedns.router import Router


class FixedA(Resolver):
    """Answers every query with one A record."""

    def __init__(self, ident, address):
        self.ident = ident
        self.address = address

    def resolve(self, q, ci):
        a = dns.message.make_response(q)
        a.answer.append(
            dns.rrset.from_text(q.question[0].name, 300, "IN", "A", self.address)
        )
        return a


class Block(Resolver):
    ident = "block"

    def resolve(self, q, ci):
        return nxdomain(q)


router = Router("my-router")
router.add(
    new_route(r"\.ads\.example\.$", "", [], [], "", "", "", "", "", "", Block()),
    new_route("", "", [], [], "", "", "", "", "", "",
              RoundRobin("rr", FixedA("a", "192.0.2.1"), FixedA("b", "192.0.2.2"))),
)

q = dns.message.make_query("www.example.", "A")
print(router.resolve(q, ClientInfo()))
```

A route whose name is empty and that has no type or class acts as the default
route. Add it last: routes are checked in the order they were added.

## Errors

Resolvers raise exceptions where a lookup fails. `Router` raises
`LookupError` when no route matches, `Pipeline` raises `QueryTimeoutError`
when no answer arrives in time, and constructors such as `new_route()` and
`Replace` raise `ValueError` on bad parameters.

## What this package does not do

- It has no listeners or servers: nothing here accepts queries from the
  network. `Listener` is only an interface.
- It has no ready-made upstream clients for plain DNS, DNS-over-TLS or
  DNS-over-HTTPS. `Pipeline` handles multiplexing, but the connection itself
  comes from a `DNSDialer` you provide.
- It has no response cache and no resolvers that answer from fixed
  configuration; leaf resolvers are written by subclassing `Resolver`.
- The only resolver group is `RoundRobin`; there are no failover or
  fastest-response groups.
- It reads no configuration files and installs no command.