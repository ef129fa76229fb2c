"""Storage for pending two-factor challenges.

One live challenge per account. ``put`` replaces whatever was stored,
``discard`` removes a challenge only if it is still the stored one, so two
concurrent verifications of the same code cannot both succeed.
"""

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import redis

from chatrelay.logging_config import get_logger

logger = get_logger("challenge_store")


@dataclass(frozen=True)
class VerificationChallenge:
    account_id: str
    code: str
    expires_at: datetime
    delivery_method: str
    issued_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_json(self) -> str:
        return json.dumps(
            {
                "account_id": self.account_id,
                "code": self.code,
                "expires_at": self.expires_at.isoformat(),
                "delivery_method": self.delivery_method,
                "issued_at": self.issued_at.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, payload: str) -> "VerificationChallenge":
        data = json.loads(payload)
        return cls(
            account_id=data["account_id"],
            code=data["code"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
            delivery_method=data["delivery_method"],
            issued_at=datetime.fromisoformat(data["issued_at"]),
        )


class ChallengeStore(ABC):
    @abstractmethod
    def put(self, challenge: VerificationChallenge) -> None:
        pass

    @abstractmethod
    def get(self, account_id: str) -> Optional[VerificationChallenge]:
        pass

    @abstractmethod
    def delete(self, account_id: str) -> None:
        pass

    @abstractmethod
    def discard(self, challenge: VerificationChallenge) -> bool:
        """Delete ``challenge`` if it is still stored. True when this call removed it."""
        pass


class InMemoryChallengeStore(ChallengeStore):
    def __init__(self):
        self._challenges: dict[str, VerificationChallenge] = {}
        self._lock = threading.Lock()

    def put(self, challenge: VerificationChallenge) -> None:
        with self._lock:
            self._challenges[challenge.account_id] = challenge

    def get(self, account_id: str) -> Optional[VerificationChallenge]:
        with self._lock:
            return self._challenges.get(account_id)

    def delete(self, account_id: str) -> None:
        with self._lock:
            self._challenges.pop(account_id, None)

    def discard(self, challenge: VerificationChallenge) -> bool:
        with self._lock:
            if self._challenges.get(challenge.account_id) != challenge:
                return False
            del self._challenges[challenge.account_id]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)


# Delete KEYS[1] only when it still holds ARGV[1].
_COMPARE_AND_DELETE = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class RedisChallengeStore(ChallengeStore):
    """Redis-backed store; keys outlive the challenge so expiry is still reported."""

    KEY_PREFIX = "chatrelay:2fa"

    def __init__(self, client: "redis.Redis", ttl_seconds: int, grace_seconds: int = 3600):
        self.client = client
        self.key_ttl_seconds = ttl_seconds + grace_seconds
        self._compare_and_delete = client.register_script(_COMPARE_AND_DELETE)

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int) -> "RedisChallengeStore":
        client = redis.Redis.from_url(url, decode_responses=True, socket_timeout=2, socket_connect_timeout=2)
        return cls(client, ttl_seconds)

    def _key(self, account_id: str) -> str:
        return f"{self.KEY_PREFIX}:{account_id}"

    def put(self, challenge: VerificationChallenge) -> None:
        self.client.setex(self._key(challenge.account_id), self.key_ttl_seconds, challenge.to_json())

    def get(self, account_id: str) -> Optional[VerificationChallenge]:
        payload = self.client.get(self._key(account_id))
        if not payload:
            return None
        try:
            return VerificationChallenge.from_json(payload)
        except (ValueError, KeyError) as e:
            logger.warning(f"Dropping undecodable challenge: {e}")
            self.delete(account_id)
            return None

    def delete(self, account_id: str) -> None:
        self.client.delete(self._key(account_id))

    def discard(self, challenge: VerificationChallenge) -> bool:
        removed = self._compare_and_delete(keys=[self._key(challenge.account_id)], args=[challenge.to_json()])
        return bool(removed)
