"""Learner profiles kept in Redis; the active profile id namespaces progress."""

import logging
import time
from typing import List, Optional

from pydantic import TypeAdapter
from redis import Redis, RedisError

from .config import settings
from .errors import PersistenceFailure, ProfileNotFound
from .ledger import ProgressLedger
from .models import Profile

logger = logging.getLogger(__name__)

_profile_list = TypeAdapter(List[Profile])


class ProfileStore:
    def __init__(
        self,
        client: Redis,
        profiles_key: str = settings.PROFILES_KEY,
        active_key: str = settings.ACTIVE_PROFILE_KEY,
    ):
        self.client = client
        self.profiles_key = profiles_key
        self.active_key = active_key

    def list_profiles(self) -> List[Profile]:
        raw = self._call(self.client.get, self.profiles_key)
        if not raw:
            return []
        return _profile_list.validate_json(raw)

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        return next((p for p in self.list_profiles() if p.id == profile_id), None)

    def create_profile(self, name: str, now: Optional[float] = None) -> Profile:
        """Add a profile and make it the active one."""
        created = int((time.time() if now is None else now) * 1000)
        profiles = self.list_profiles()
        profile_id = f"p_{created}"
        # Ids come from the clock; bump on collisions within the same millisecond.
        while any(p.id == profile_id for p in profiles):
            created += 1
            profile_id = f"p_{created}"

        profile = Profile(id=profile_id, name=name.strip(), created=created)
        profiles.append(profile)
        self._save(profiles)
        self.set_active(profile.id)
        logger.info(f"Created profile {profile.id} ({profile.name})")
        return profile

    def get_active_id(self) -> Optional[str]:
        return self._call(self.client.get, self.active_key) or None

    def set_active(self, profile_id: str):
        if self.get_profile(profile_id) is None:
            raise ProfileNotFound(profile_id)
        self._call(self.client.set, self.active_key, profile_id)

    def delete_profile(self, profile_id: str, ledger: ProgressLedger) -> int:
        """Remove a profile together with all of its progress records."""
        profiles = self.list_profiles()
        remaining = [p for p in profiles if p.id != profile_id]
        if len(remaining) == len(profiles):
            raise ProfileNotFound(profile_id)

        self._save(remaining)
        cleared = ledger.clear_learner(profile_id)
        if self.get_active_id() == profile_id:
            self._call(self.client.delete, self.active_key)
        logger.info(f"Deleted profile {profile_id} and {cleared} progress records")
        return cleared

    def _save(self, profiles: List[Profile]):
        self._call(self.client.set, self.profiles_key, _profile_list.dump_json(profiles))

    @staticmethod
    def _call(method, *args):
        try:
            return method(*args)
        except RedisError as e:
            raise PersistenceFailure(f"Profile store unavailable: {e}") from e
