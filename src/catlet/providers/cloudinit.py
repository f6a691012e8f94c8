"""Cloud-init fodder generation for catlet bootstrap."""

import logging
from typing import List

from catlet.models.catlet import CatletDefinition
from catlet.models.fodder import FodderItem, FodderType
from catlet.utils.templates import render_template


logger = logging.getLogger(__name__)


WINDOWS_DEFAULT_PASSWORD = "InitialPassw0rd"

WINRM_PORT = 5985
SSH_PORT = 22

WINRM_SETUP_SCRIPT = """#ps1_sysnative
$ErrorActionPreference = "Stop"
Set-NetConnectionProfile -NetworkCategory Private -ErrorAction SilentlyContinue
winrm quickconfig -q -force
winrm set winrm/config/service '@{AllowUnencrypted="true"}'
winrm set winrm/config/service/auth '@{Basic="true"}'
winrm set winrm/config/winrs '@{MaxMemoryPerShellMB="2048"}'
netsh advfirewall firewall add rule name="WinRM-HTTP-{{ port }}" dir=in localport={{ port }} protocol=TCP action=allow
Set-Service -Name WinRM -StartupType Automatic
Restart-Service -Name WinRM
Write-Output "WinRM enabled for {{ username }}"
"""


class CloudInitProvider:
    """Generates the auto fodder that makes a new catlet reachable."""

    def effective_password(self, definition: CatletDefinition) -> str:
        """Explicit password, else the platform default."""
        credentials = definition.credentials
        if credentials.password:
            return credentials.password
        if definition.is_windows():
            return WINDOWS_DEFAULT_PASSWORD
        return credentials.username

    def connection_port(self, definition: CatletDefinition) -> int:
        """Port of the remote access channel the fodder enables."""
        if definition.is_windows() and definition.enable_winrm:
            return WINRM_PORT
        return SSH_PORT

    def generate(self, definition: CatletDefinition) -> List[FodderItem]:
        """Generate auto fodder for the definition."""
        if not definition.auto_config:
            logger.debug(f"Auto config disabled for {definition.effective_name}")
            return []

        if definition.is_windows():
            return self._windows_fodder(definition)
        return self._linux_fodder(definition)

    def _linux_fodder(self, definition: CatletDefinition) -> List[FodderItem]:
        credentials = definition.credentials
        user = {
            "name": credentials.username,
            "sudo": ["ALL=(ALL) NOPASSWD:ALL"],
            "shell": "/bin/bash",
            "groups": ["adm"],
            "lock_passwd": False,
            "plain_text_passwd": self.effective_password(definition),
        }
        if credentials.public_key:
            user["ssh_authorized_keys"] = [credentials.public_key]

        return [
            FodderItem(
                name="catlet-user-setup",
                type=FodderType.CLOUD_CONFIG,
                content={"users": [user]},
            )
        ]

    def _windows_fodder(self, definition: CatletDefinition) -> List[FodderItem]:
        credentials = definition.credentials
        user = {
            "name": credentials.username,
            "groups": ["Administrators"],
            "passwd": self.effective_password(definition),
        }
        if credentials.public_key:
            user["ssh_authorized_keys"] = [credentials.public_key]

        fodder = [
            FodderItem(
                name="catlet-user-setup-windows",
                type=FodderType.CLOUD_CONFIG,
                content={"users": [user]},
            )
        ]

        if definition.enable_winrm:
            script = render_template(
                WINRM_SETUP_SCRIPT,
                port=WINRM_PORT,
                username=credentials.username,
            )
            fodder.append(
                FodderItem(name="winrm-setup", type=FodderType.SHELL_SCRIPT, content=script)
            )

        return fodder
