"""
Set Reconciler - Membership reconciliation against a remote registry.

A registration group (for example a load balancer target group) owns a set
of members remotely. The provider only keeps a cached copy of that set, so
every change is computed as an identity-based difference between the
desired set and the last observed one, and applied as a remove call
followed by an add call through an injected MembershipRegistry.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from errors import EmptyResultError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class AttrState(Enum):
    """The three states an optional attribute can be in."""

    SET = "set"
    UNKNOWN = "unknown"  # pending assignment by the remote side
    UNSET = "unset"


@dataclass(frozen=True)
class Attr:
    """Optional attribute that keeps 'unknown' apart from 'unset'."""

    state: AttrState = AttrState.UNSET
    value: Any = None

    @classmethod
    def of(cls, value: Any) -> "Attr":
        """A set attribute, or an unset one when value is None."""
        if value is None:
            return cls(AttrState.UNSET)
        return cls(AttrState.SET, value)

    @classmethod
    def unknown(cls) -> "Attr":
        return cls(AttrState.UNKNOWN)

    @classmethod
    def unset(cls) -> "Attr":
        return cls(AttrState.UNSET)

    @property
    def is_set(self) -> bool:
        return self.state is AttrState.SET

    @property
    def is_unknown(self) -> bool:
        return self.state is AttrState.UNKNOWN

    @property
    def is_unset(self) -> bool:
        return self.state is AttrState.UNSET

    def value_or_none(self) -> Any:
        return self.value if self.is_set else None


UNSET = Attr.unset()
UNKNOWN = Attr.unknown()


@dataclass(frozen=True)
class Member:
    """
    A registered member of a group.

    Equality and hashing use target_id only. The optional attributes are
    part of the registration payload and are fixed at add time.
    """

    target_id: str
    availability_zone: Attr = field(default=UNSET, compare=False)
    port: Attr = field(default=UNSET, compare=False)

    @property
    def key(self) -> str:
        return self.target_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any], computed_port: bool = True) -> "Member":
        """
        Build a member from a desired-state or persisted-state dict.

        Args:
            data: Dict with 'target_id' and optional 'availability_zone'/'port'
            computed_port: Treat a missing port as unknown rather than unset

        Raises:
            ValidationError: If target_id is missing or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ValidationError(f"target must be an object, got {type(data).__name__}")

        target_id = data.get("target_id")
        if not isinstance(target_id, str) or not target_id:
            raise ValidationError("target_id is required for every target")

        availability_zone = data.get("availability_zone")
        if availability_zone is not None and not isinstance(availability_zone, str):
            raise ValidationError(
                f"availability_zone of target {target_id} must be a string"
            )

        port = data.get("port")
        if port is None:
            port_attr = UNKNOWN if computed_port else UNSET
        elif isinstance(port, bool) or not isinstance(port, int):
            raise ValidationError(f"port of target {target_id} must be an integer")
        else:
            port_attr = Attr.of(port)

        return cls(
            target_id=target_id,
            availability_zone=Attr.of(availability_zone),
            port=port_attr,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "availability_zone": self.availability_zone.value_or_none(),
            "port": self.port.value_or_none(),
        }

    def with_port(self, port: Attr) -> "Member":
        return replace(self, port=port)

    def same_attributes(self, other: "Member") -> bool:
        return (
            self.availability_zone == other.availability_zone
            and self.port == other.port
        )


class MembershipSet:
    """
    Unordered collection of members, unique by target_id.

    Repeated members with identical attributes collapse into one. With
    strict=True a repeated target_id carrying different attributes is a
    ValidationError; otherwise the first occurrence wins.
    """

    def __init__(self, members: Iterable[Member] = (), strict: bool = True):
        self._members: Dict[str, Member] = {}
        for member in members:
            existing = self._members.get(member.key)
            if existing is None:
                self._members[member.key] = member
            elif not existing.same_attributes(member) and strict:
                raise ValidationError(
                    f"target {member.key} is listed more than once "
                    f"with different attributes"
                )

    @classmethod
    def from_dicts(
        cls, items: Optional[Iterable[Dict[str, Any]]], computed_port: bool = True
    ) -> "MembershipSet":
        if items is None:
            return cls()
        if isinstance(items, (str, bytes, dict)):
            raise ValidationError("targets must be a list of objects")
        return cls(Member.from_dict(item, computed_port) for item in items)

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Members as dicts, sorted by target_id for stable persisted state."""
        return [self._members[k].to_dict() for k in sorted(self._members)]

    def get(self, key: str) -> Optional[Member]:
        return self._members.get(key)

    def ids(self) -> Set[str]:
        return set(self._members)

    def members(self) -> List[Member]:
        return list(self._members.values())

    def __iter__(self) -> Iterator[Member]:
        return iter(self._members.values())

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, item: Union[Member, str]) -> bool:
        key = item.key if isinstance(item, Member) else item
        return key in self._members

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MembershipSet):
            return NotImplemented
        return self.ids() == other.ids()

    def __repr__(self) -> str:
        return f"MembershipSet({sorted(self._members)})"


def diff(
    desired: MembershipSet, observed: MembershipSet
) -> Tuple[List[Member], List[Member]]:
    """
    Compute the mutations that turn observed into desired.

    Returns:
        (to_add, to_remove). to_add holds desired members missing from
        observed, to_remove holds observed members missing from desired.
        Members present in both are left alone even if their attributes
        differ.
    """
    to_add = [m for m in desired if m.key not in observed]
    to_remove = [m for m in observed if m.key not in desired]
    return to_add, to_remove


def resolve_computed(planned: MembershipSet, prior: MembershipSet) -> MembershipSet:
    """
    Carry server-assigned ports from prior state into planned members.

    A planned member whose port is unknown takes the port observed for the
    same target_id, so a value assigned by the remote side stays stable
    until the member is removed and added again.
    """
    resolved = []
    for member in planned:
        previous = prior.get(member.key)
        if member.port.is_unknown and previous is not None and previous.port.is_set:
            member = member.with_port(previous.port)
        resolved.append(member)
    return MembershipSet(resolved)


def finalize_computed(planned: MembershipSet, observed: MembershipSet) -> MembershipSet:
    """
    Settle every still-unknown port after a mutation.

    Ports reported by the registry are taken as is; members the registry
    does not report yet end up with an unset port.
    """
    final = []
    for member in planned:
        if member.port.is_unknown:
            remote = observed.get(member.key)
            if remote is not None and remote.port.is_set:
                member = member.with_port(remote.port)
            else:
                member = member.with_port(UNSET)
        final.append(member)
    return MembershipSet(final)


class MembershipRegistry(ABC):
    """
    Remote side of a registration group.

    Implementations raise NotFoundError when the group itself does not
    exist. Other failures propagate untouched.
    """

    @abstractmethod
    async def add_members(self, group: str, members: List[Member]) -> None:
        """Register members with the group."""
        pass

    @abstractmethod
    async def remove_members(self, group: str, members: List[Member]) -> None:
        """Deregister members from the group."""
        pass

    @abstractmethod
    async def describe_members(
        self, group: str, scope: Optional[List[Member]] = None
    ) -> Optional[List[Member]]:
        """
        List the members currently registered with the group.

        Args:
            group: The group identifier
            scope: Optionally restrict the query to these members

        Returns:
            The registered members (possibly an empty list), or None when
            the remote call returned no payload.
        """
        pass


@dataclass
class ApplyResult:
    """Outcome of SetReconciler.apply()."""

    added: int = 0
    removed: int = 0
    group_found: bool = True


class SetReconciler:
    """Diffs, applies and re-describes group membership."""

    def __init__(self, registry: MembershipRegistry):
        self.registry = registry

    @staticmethod
    def diff(
        desired: MembershipSet, observed: MembershipSet
    ) -> Tuple[List[Member], List[Member]]:
        return diff(desired, observed)

    async def apply(
        self, group: str, to_remove: List[Member], to_add: List[Member]
    ) -> ApplyResult:
        """
        Remove stale members, then add new ones.

        A group that no longer exists satisfies any removal, so NotFound on
        the remove step ends the apply successfully with group_found=False
        and the add step is skipped. Any other failure propagates before
        the add step runs.
        """
        if to_remove:
            try:
                await self.registry.remove_members(group, to_remove)
            except NotFoundError:
                logger.warning(
                    f"Group {group} not found while removing members, "
                    f"nothing left to remove"
                )
                return ApplyResult(group_found=False)
            logger.info(f"Removed {len(to_remove)} member(s) from {group}")

        if to_add:
            await self.registry.add_members(group, to_add)
            logger.info(f"Added {len(to_add)} member(s) to {group}")

        return ApplyResult(added=len(to_add), removed=len(to_remove))

    async def describe(
        self, group: str, scope: Optional[List[Member]] = None
    ) -> MembershipSet:
        """
        Query the registered members of a group.

        Raises:
            NotFoundError: If the group does not exist
            EmptyResultError: If the registry returned no payload
        """
        payload = await self.registry.describe_members(group, scope or None)
        if payload is None:
            raise EmptyResultError(
                {"group": group, "scope": [m.key for m in scope or []]}
            )
        return MembershipSet(payload, strict=False)

    async def reconcile(
        self, group: str, desired: MembershipSet, observed: MembershipSet
    ) -> ApplyResult:
        """Bring the group from observed to desired membership."""
        to_add, to_remove = diff(desired, observed)
        logger.debug(
            f"Membership diff for {group}: "
            f"add={[m.key for m in to_add]} remove={[m.key for m in to_remove]}"
        )
        if not to_add and not to_remove:
            return ApplyResult()
        return await self.apply(group, to_remove, to_add)
