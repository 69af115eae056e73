"""
bbl.commands.help — Usage text.
"""

from __future__ import annotations

from bbl.storage import State
from bbl.ui import Logger

USAGE = """Usage: bbl [GLOBAL OPTIONS] COMMAND [OPTIONS]

Global Options:
  --help, -h                 show usage
  --version, -v              print the bbl version
  --state-dir                directory holding bbl-state.json (default: current directory)
  --aws-access-key-id        AWS access key id (env: BBL_AWS_ACCESS_KEY_ID)
  --aws-secret-access-key    AWS secret access key (env: BBL_AWS_SECRET_ACCESS_KEY)
  --aws-region               AWS region (env: BBL_AWS_REGION)

Commands:
  up                  create or update the BOSH director and its AWS infrastructure
  destroy             tear down the BOSH director and its infrastructure [--no-confirm]
  create-lbs          attach a load balancer
                        --type cf|concourse --cert PATH --key PATH [--chain PATH]
                        [--skip-if-exists]
  update-lbs          rotate the load balancer certificate
                        --cert PATH --key PATH [--chain PATH]
  delete-lbs          detach the load balancer
  lbs                 print the attached load balancers
  director-address    print the BOSH director address
  director-username   print the BOSH director username
  director-password   print the BOSH director password
  director-ca-cert    print the CA certificate of the BOSH director
  ssh-key             print the private SSH key of the BOSH director
  version             print the bbl version
  help                print this usage"""


class Help:
    def __init__(self, ui: Logger) -> None:
        self._ui = ui

    def execute(self, args: list[str], state: State) -> State:
        self._ui.println(USAGE)
        return state
