"""Direct connections between two sibling instances of one parent module."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from .models import ConnectionMatch, DesignIndex, InstanceReference, PortBinding

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_net(expr: str) -> str:
    return _WHITESPACE_RE.sub("", expr)


def _nets_by_expression(instance: InstanceReference) -> Dict[str, List[PortBinding]]:
    nets: Dict[str, List[PortBinding]] = {}
    for binding in instance.bindings:
        net = normalize_net(binding.expr)
        if not net:
            continue
        nets.setdefault(net, []).append(binding)
    return nets


def _locate_pair(
    index: DesignIndex,
    parent: str,
    instance_a: str,
    instance_b: str,
) -> Optional[Tuple[InstanceReference, InstanceReference]]:
    for module in index.definitions(parent):
        found_a = next((i for i in module.instances if i.instance_name == instance_a), None)
        found_b = next((i for i in module.instances if i.instance_name == instance_b), None)
        if found_a is not None and found_b is not None:
            return found_a, found_b
    return None


def find_connections(
    index: Optional[DesignIndex],
    parent: str,
    instance_a: str,
    instance_b: str,
) -> List[ConnectionMatch]:
    """Pairs of bindings on *instance_a* and *instance_b* sharing a net.

    Every combination is reported, so a net fanning out to several ports
    on either side yields several matches. Absent instances produce an
    empty list.
    """
    if index is None:
        return []
    pair = _locate_pair(index, parent, instance_a, instance_b)
    if pair is None:
        logger.debug("Instances %s/%s not found together in %s", instance_a, instance_b, parent)
        return []

    nets_a = _nets_by_expression(pair[0])
    nets_b = _nets_by_expression(pair[1])

    matches: List[ConnectionMatch] = []
    for net, bindings_a in nets_a.items():
        bindings_b = nets_b.get(net)
        if not bindings_b:
            continue
        for binding_a in bindings_a:
            for binding_b in bindings_b:
                matches.append(ConnectionMatch(
                    net=net,
                    binding_a=binding_a,
                    binding_b=binding_b,
                    location=binding_a.location,
                ))
    return matches
