# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/cli/help_texts.py
from __future__ import annotations

# NOTE:
# Pure help text for the argparse epilog. Keep it copy/paste runnable.

YAML_EXAMPLE = r"""# vc2vc configuration examples (YAML)
#
# Run:
#   vc2vc --config site.yaml --action backup --host esx01.example.com
#
# Merge multiple configs (later overrides earlier):
#   vc2vc --config site.yaml --config migrate-esx01.yaml
#
# Required CLI args can come from YAML because vc2vc uses a 2-phase parse:
#   Phase 0: reads only --config / logging flags
#   Phase 1: loads+merges YAML and applies it as argparse defaults
#   Phase 2: parses full args (CLI flags override YAML)
#
# --------------------------------------------------------------------------------------
# Common keys
# --------------------------------------------------------------------------------------
# action: backup            # backup | restore | migrate
# host: esx01.example.com
# backup_dir: ./backups
# verbose: 1
# log_file: ./vc2vc.log    # default: <backup_dir>/logs/vc2vc-<ts>.log
# uplink_portgroup: DSwitch-Uplinks
# retry:
#   attempts: 3
#   base_s: 2
#   max_s: 30
#
# Source vCenter (backup/restore target it, migrate leaves it)
# vcenter: vc-old.example.com
# vc_user: administrator@vsphere.local
# vc_password_env: VC_PASSWORD
# vc_insecure: true
#
# --------------------------------------------------------------------------------------
# Restore
# --------------------------------------------------------------------------------------
# action: restore
# backup_file: ./backups/esx01_20260101_120000.json   # default: newest backup of --host
# facets: [network, services, firewall]               # default: all
# dry_run: true
#
# --------------------------------------------------------------------------------------
# Migrate
# --------------------------------------------------------------------------------------
# action: migrate
# host_user: root
# host_password_env: ESX_ROOT_PASSWORD
# target_vcenter: vc-new.example.com
# target_vc_user: administrator@vsphere.local
# target_vc_password_env: VC_NEW_PASSWORD
# target_datacenter: DC-East
# target_cluster: Compute-01       # omit to add as a standalone host
# timeout: 300
# remove_from_source: true
"""

FEATURE_SUMMARY = """ • Backup: network (standard + distributed switches, VMkernel adapters, uplinks), storage, services,
   firewall, advanced settings, NTP, DNS, syslog and power policy captured to one JSON snapshot
 • Restore: diff-apply a snapshot; only differing items are changed, so re-runs are no-ops
 • Migrate: lockdown handling, pre-migration snapshot, disconnect, orphan cleanup, register in the
   target vCenter, restore, lockdown re-apply; rollback to the source vCenter on failure
 • Uplinks: four independent resolution strategies with an explicit uplink-portgroup override
"""
