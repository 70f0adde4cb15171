# tasks.py

from invoke import task, Exit
import glob
import os
import shutil
from datetime import datetime

import check_agreement

# invoke check-agreement --network network.yaml --dup-check
# invoke check-agreement --network network.yaml --peers vp0,vp2 --keep
@task(name="check-agreement")
def check(c, network="network.yaml", peers=None, output_dir="agreement",
          keep=False, dup_check=False, timeout=None, diff_cmd=None,
          summary=None, quiet=False):
    """
    Collects the history of every peer named in the network file and checks that they agree.

    Parameters:
        network (str): YAML file describing the consensus mode and the peers.
        peers (str, optional): Comma-separated peer ids, in comparison order. Defaults to all peers.
        output_dir (str): Local folder for the collected histories.
        keep (bool): Keep the collected histories even when all peers agree.
        dup_check (bool): Also look for duplicated transaction ids.
    """
    argv = ["--network", network, "--output-dir", output_dir]
    if peers:
        argv += ["--peers", peers]
    if timeout is not None:
        argv += ["--timeout", str(timeout)]
    if diff_cmd:
        argv += ["--diff-cmd", diff_cmd]
    if summary:
        argv += ["--summary", summary]
    if keep:
        argv.append("--keep")
    if dup_check:
        argv.append("--dup-check")
    if quiet:
        argv.append("--quiet")

    code = check_agreement.main(argv)
    if code:
        raise Exit(code=code)


# invoke scan-duplicates --artifacts agreement/vp0.chain,agreement/vp1.chain
@task
def scan_duplicates(c, artifacts):
    """
    Scans already collected histories for duplicated transaction ids.

    Parameters:
        artifacts (str): A comma-separated list of history files.
    """
    paths = [a.strip() for a in artifacts.split(",") if a.strip()]
    if not paths:
        print("No history files given. Please specify at least one.")
        raise Exit(code=1)

    code = check_agreement.main(["--scan", *paths])
    if code:
        raise Exit(code=code)


@task
def archive_artifacts(c, output_dir="agreement", suffix=""):
    """
    Moves kept histories out of the output folder into a timestamped archive folder,
    so the next check starts from an empty folder.
    """
    chains = glob.glob(os.path.join(output_dir, "*.chain"))
    if not chains:
        print(f"No histories found in {output_dir}/")
        return

    ts_folder = datetime.now().strftime(f"agreement_%Y%m%d_%H%M%S{suffix}")
    os.makedirs(ts_folder, exist_ok=True)
    for f in chains:
        try:
            shutil.move(f, os.path.join(ts_folder, os.path.basename(f)))
        except OSError as e:
            print(f"‼️  archiving {f} failed: {e}")

    print(f"📦  archived {len(chains)} histories → {ts_folder}")

