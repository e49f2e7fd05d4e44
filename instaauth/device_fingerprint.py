"""
Device Identity
===============
Stable pseudo-device identity for the Instagram Private API.

The service correlates the identity fields sent within one flow
(login, two-factor, challenge), so an identity is created once per
session and only regenerated when a new flow starts from scratch.

Two ways to get one:
    1. DETERMINISTIC: same seed = same device, always
    2. FRESH: random UUIDs for a new registration/challenge attempt

Usage:
    fp = DeviceFingerprint.generate("my_account")
    fp.device_id      → "android-7f3b8c2a1d4e9f0a"
    fp.phone_guid     → "a1b2c3d4-e5f6-7890-abcd-..."
    fp.device_guid    → "f8e7d6c5-b4a3-9281-..."
    fp.user_agent     → "Instagram 332.0.0.0.64 Android ..."

    fp.save("device.json")
    fp = DeviceFingerprint.load("device.json")
"""

import hashlib
import json
import logging
import os
import random
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .config import IG_APP_ID_MOBILE

logger = logging.getLogger("instaauth.device_fingerprint")


# ─── DEVICE DATABASE ─────────────────────────────────────────

DEVICE_DATABASE: List[Dict[str, Any]] = [
    {
        "manufacturer": "Samsung",
        "model": "SM-S928B",
        "device_name": "Galaxy S25 Ultra",
        "android_version": 35,
        "android_release": "15",
        "dpi": "640dpi",
        "resolution": "1440x3120",
        "cpu": "exynos2400",
    },
    {
        "manufacturer": "Samsung",
        "model": "SM-F946B",
        "device_name": "Galaxy Z Fold5",
        "android_version": 34,
        "android_release": "14",
        "dpi": "420dpi",
        "resolution": "1812x2176",
        "cpu": "kalama",
    },
    {
        "manufacturer": "Google",
        "model": "Pixel 8 Pro",
        "device_name": "Pixel 8 Pro",
        "android_version": 34,
        "android_release": "14",
        "dpi": "560dpi",
        "resolution": "1344x2992",
        "cpu": "Tensor G3",
    },
    {
        "manufacturer": "Xiaomi",
        "model": "2311DRK48C",
        "device_name": "Xiaomi 14",
        "android_version": 34,
        "android_release": "14",
        "dpi": "480dpi",
        "resolution": "1200x2670",
        "cpu": "sm8650",
    },
    {
        "manufacturer": "OnePlus",
        "model": "CPH2583",
        "device_name": "OnePlus 12",
        "android_version": 34,
        "android_release": "14",
        "dpi": "480dpi",
        "resolution": "1440x3168",
        "cpu": "sm8650",
    },
    {
        "manufacturer": "Nothing",
        "model": "A065",
        "device_name": "Nothing Phone (2)",
        "android_version": 34,
        "android_release": "14",
        "dpi": "420dpi",
        "resolution": "1080x2412",
        "cpu": "sm8475",
    },
]

IG_APP_VERSIONS = [
    "332.0.0.0.64",
    "331.0.0.0.93",
    "330.0.0.0.89",
    "329.0.0.0.45",
]

LOCALES = ["en_US", "en_GB", "de_DE", "fr_FR", "es_ES", "pt_BR", "it_IT"]


def generate_device_id(seed: Optional[str] = None) -> str:
    """
    Android-style device id: "android-" + 16 hex chars.
    Random unless a seed is given.
    """
    raw = seed if seed is not None else uuid.uuid4().hex
    return "android-" + hashlib.md5(raw.encode()).hexdigest()[:16]


@dataclass
class DeviceFingerprint:
    """
    Device identity for one logical session.

    The four protocol fields (device_id, phone_guid, device_guid,
    android_id) are what the service correlates; the rest only shapes
    the user-agent and headers.
    """

    # ─── Protocol IDs ─────────────
    device_id: str = ""          # android-[16 hex]
    phone_guid: str = ""         # UUID
    device_guid: str = ""        # UUID
    android_id: str = ""         # 16 hex

    # ─── Device Info ──────────────
    manufacturer: str = ""
    model: str = ""
    device_name: str = ""
    android_version: int = 34
    android_release: str = "14"
    dpi: str = "480dpi"
    resolution: str = "1080x2400"
    cpu: str = ""
    ig_app_version: str = ""
    ig_app_version_code: str = ""
    locale: str = "en_US"

    # ─── Metadata ─────────────────
    seed: str = ""
    created_at: float = 0.0

    # ═══════════════════════════════════════════════════════════
    # FACTORY METHODS
    # ═══════════════════════════════════════════════════════════

    @classmethod
    def generate(
        cls,
        seed: str = "",
        device_index: Optional[int] = None,
        locale: str = "",
    ) -> "DeviceFingerprint":
        """
        Generate a device identity.

        Same seed → same identity. Empty seed = random (one flow only).

        Args:
            seed: Unique identifier (username, account id, ...)
            device_index: Force a specific device from DEVICE_DATABASE
            locale: Force a specific locale
        """
        if not seed:
            seed = str(uuid.uuid4())

        rng = random.Random(seed)

        if device_index is not None:
            idx = device_index % len(DEVICE_DATABASE)
        else:
            idx = rng.randint(0, len(DEVICE_DATABASE) - 1)
        device = DEVICE_DATABASE[idx]

        def make_uuid(component: str) -> str:
            return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{seed}:{component}"))

        return cls(
            device_id=generate_device_id(f"{seed}:device"),
            phone_guid=make_uuid("phone"),
            device_guid=make_uuid("guid"),
            android_id=hashlib.md5(f"{seed}:android".encode()).hexdigest()[:16],
            manufacturer=device["manufacturer"],
            model=device["model"],
            device_name=device["device_name"],
            android_version=device["android_version"],
            android_release=device["android_release"],
            dpi=device["dpi"],
            resolution=device["resolution"],
            cpu=device["cpu"],
            ig_app_version=IG_APP_VERSIONS[rng.randint(0, len(IG_APP_VERSIONS) - 1)],
            ig_app_version_code=str(rng.randint(520000000, 580000000)),
            locale=locale or LOCALES[rng.randint(0, len(LOCALES) - 1)],
            seed=seed,
            created_at=time.time(),
        )

    @classmethod
    def fresh(cls, locale: str = "") -> "DeviceFingerprint":
        """New random identity for a new registration/challenge attempt."""
        return cls.generate(seed="", locale=locale)

    # ═══════════════════════════════════════════════════════════
    # COMPUTED PROPERTIES
    # ═══════════════════════════════════════════════════════════

    @property
    def user_agent(self) -> str:
        """Instagram Android app User-Agent string."""
        return (
            f"Instagram {self.ig_app_version} "
            f"Android ({self.android_version}/{self.android_release}; "
            f"{self.dpi}; {self.resolution}; "
            f"{self.manufacturer}; {self.model}; "
            f"{self.model.lower().replace('-', '').replace(' ', '')}; {self.cpu}; "
            f"{self.locale}; {self.ig_app_version_code})"
        )

    @property
    def headers(self) -> Dict[str, str]:
        """Private API headers, coherent with this identity."""
        return {
            "User-Agent": self.user_agent,
            "X-IG-App-ID": IG_APP_ID_MOBILE,
            "X-IG-Capabilities": "3brTv10=",
            "X-IG-Connection-Type": "WIFI",
            "X-IG-Device-ID": self.device_guid,
            "X-IG-Android-ID": self.device_id,
            "X-IG-Family-Device-ID": self.phone_guid,
            "X-IG-App-Locale": self.locale,
            "X-IG-Device-Locale": self.locale,
            "X-Pigeon-Session-Id": f"UFS-{self.device_guid}-0",
            "X-Pigeon-Rawclienttime": f"{time.time():.3f}",
            "X-FB-HTTP-Engine": "Liger",
            "Accept-Language": self.locale.replace("_", "-"),
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
        }

    # ═══════════════════════════════════════════════════════════
    # PERSISTENCE
    # ═══════════════════════════════════════════════════════════

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceFingerprint":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def save(self, filepath: str = "device_fingerprint.json") -> None:
        """Save identity to a JSON file."""
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Device identity saved: {filepath}")

    @classmethod
    def load(cls, filepath: str = "device_fingerprint.json") -> "DeviceFingerprint":
        """Load identity from a JSON file."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.info(f"Device identity loaded: {filepath}")
        return cls.from_dict(data)

    @classmethod
    def load_or_generate(
        cls,
        filepath: str = "device_fingerprint.json",
        seed: str = "",
    ) -> "DeviceFingerprint":
        """Load existing identity or generate and save a new one."""
        if os.path.exists(filepath):
            return cls.load(filepath)
        fp = cls.generate(seed=seed)
        fp.save(filepath)
        return fp

    def __repr__(self) -> str:
        return (
            f"DeviceFingerprint("
            f"{self.manufacturer} {self.device_name}, "
            f"device_id={self.device_id})"
        )
