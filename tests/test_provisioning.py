"""Tests for the provisioning step sequence."""

from tempsystem.lib.env import Paths
from tempsystem.lib.pkg import BASE_PACKAGES, exact_name_pattern, pacman_install_argv, split_package_args
from tempsystem.provisioning import ROOT, ProvisioningPlan, build_steps


def _ids(plan):
    return [s.step_id for s in build_steps(plan)]


def _install_packages(plan):
    step = {s.step_id: s for s in build_steps(plan)}["10_install_base"]
    argv = step.commands[0].argv
    flags = {"--noprogressbar", "--needed", "--noconfirm", "-Sy", "-Syu"}
    return [a for a in argv[1:] if a not in flags]


class TestStepOrder:
    def test_default_sequence(self):
        assert _ids(ProvisioningPlan()) == [
            "10_install_base",
            "15_create_user",
            "30_change_shell",
            "40_install_shell_framework",
            "50_install_shell_plugins",
            "60_tune_makepkg",
            "70_install_aur_helper",
            "80_remove_orphans",
            "90_cleanup_build_dir",
        ]

    def test_command_not_found_variant_inserts_staging_step(self):
        ids = _ids(ProvisioningPlan(stage_command_not_found=True))
        assert ids.index("20_stage_command_not_found") == ids.index("15_create_user") + 1
        assert ids.index("20_stage_command_not_found") < ids.index("30_change_shell")
        # The variant is otherwise identical.
        assert [i for i in ids if i != "20_stage_command_not_found"] == _ids(ProvisioningPlan())

    def test_aur_packages_step_between_helper_and_orphans(self):
        ids = _ids(ProvisioningPlan(extra_aur_packages=("paru-bin",)))
        assert ids.index("70_install_aur_helper") < ids.index("75_install_aur_packages") < ids.index("80_remove_orphans")

    def test_plugins_after_framework(self):
        ids = _ids(ProvisioningPlan())
        assert ids.index("40_install_shell_framework") < ids.index("50_install_shell_plugins")

    def test_ids_are_sorted(self):
        ids = _ids(
            ProvisioningPlan(
                stage_command_not_found=True,
                extra_packages=("nodejs",),
                extra_aur_packages=("x",),
                chaotic_aur=True,
            )
        )
        assert ids == sorted(ids)
        assert _ids(ProvisioningPlan(update_pkgfile=True)) == sorted(_ids(ProvisioningPlan(update_pkgfile=True)))


class TestPackageSet:
    def test_empty_package_set_is_base_list(self):
        assert _install_packages(ProvisioningPlan()) == list(BASE_PACKAGES)

    def test_extra_packages_join_base_in_one_invocation(self):
        pkgs = _install_packages(ProvisioningPlan(extra_packages=("nodejs",)))
        assert set(pkgs) == set(BASE_PACKAGES) | {"nodejs"}
        assert pkgs.count("nodejs") == 1

    def test_duplicates_appear_once(self):
        pkgs = _install_packages(ProvisioningPlan(extra_packages=("git", "nodejs", "nodejs", "zsh")))
        assert len(pkgs) == len(set(pkgs))
        assert set(pkgs) == set(BASE_PACKAGES) | {"nodejs"}

    def test_variant_b_adds_pkgfile(self):
        assert "pkgfile" in _install_packages(ProvisioningPlan(stage_command_not_found=True))

    def test_update_system_uses_full_upgrade(self):
        assert "-Syu" in pacman_install_argv(upgrade=True)
        assert "-Sy" in pacman_install_argv()

    def test_split_package_args(self):
        assert split_package_args(["nodejs,npm", "python  rust", ""]) == ["nodejs", "npm", "python", "rust"]
        assert split_package_args(None) == []


class TestStepDetails:
    def test_orphan_removal_is_tolerated_only(self):
        steps = build_steps(ProvisioningPlan(stage_command_not_found=True, extra_aur_packages=("x",)))
        tolerant = [s.step_id for s in steps if s.tolerate_failure]
        assert tolerant == ["80_remove_orphans"]

    def test_installer_cleanup_is_scoped_to_framework_step(self):
        step = {s.step_id: s for s in build_steps(ProvisioningPlan())}["40_install_shell_framework"]
        fetch, chmod, install = (c.argv for c in step.commands)
        assert fetch[0] == "curl"
        assert "--retry-connrefused" in fetch and "--fail" in fetch
        assert install[1:] == ("--unattended", "--keep-zshrc")
        assert [c.argv for c in step.cleanup] == [("rm", "-f", "/tmp/ohmyzsh-install.sh")]

    def test_user_and_shell_come_from_plan(self):
        plan = ProvisioningPlan(paths=Paths(user="alice", shell="/bin/zsh"))
        step = {s.step_id: s for s in build_steps(plan)}["30_change_shell"]
        assert step.commands[0].argv == ("chsh", "-s", "/bin/zsh", "alice")
        assert step.commands[0].user == ROOT

    def test_plugins_cloned_into_framework_dir(self):
        plan = ProvisioningPlan(paths=Paths(user="alice"))
        step = {s.step_id: s for s in build_steps(plan)}["50_install_shell_plugins"]
        dests = [c.argv[-1] for c in step.commands]
        assert dests == [
            "/home/alice/.oh-my-zsh/custom/plugins/zsh-autosuggestions",
            "/home/alice/.oh-my-zsh/custom/plugins/zsh-syntax-highlighting",
        ]
        assert all(c.user == "alice" for c in step.commands)


def _step(plan, step_id):
    return {s.step_id: s for s in build_steps(plan)}[step_id]


class TestPackageChecks:
    def test_no_check_step_without_extra_packages(self):
        assert "05_check_packages" not in _ids(ProvisioningPlan())

    def test_check_step_precedes_install(self):
        ids = _ids(ProvisioningPlan(extra_packages=("nodejs",)))
        assert ids[:2] == ["05_check_packages", "10_install_base"]

    def test_each_package_looked_up_once_after_sync(self):
        step = _step(ProvisioningPlan(extra_packages=("nodejs", "npm", "nodejs")), "05_check_packages")
        sync, *lookups = step.commands
        assert sync.argv == ("pacman", "--noprogressbar", "-Sy")
        assert sync.checks_package is None
        assert [c.argv for c in lookups] == [
            ("pacman", "-Ssq", "^nodejs$"),
            ("pacman", "-Ssq", "^npm$"),
        ]
        assert [c.checks_package for c in lookups] == ["nodejs", "npm"]
        assert all(c.user == ROOT for c in step.commands)

    def test_lookup_pattern_is_exact(self):
        assert exact_name_pattern("gtk+3") == "^gtk\\+3$"
        assert exact_name_pattern("python-3.12") == "^python-3\\.12$"

    def test_aur_packages_looked_up_before_install(self):
        plan = ProvisioningPlan(paths=Paths(user="alice"), extra_aur_packages=("paru-bin", "paru-bin", "cava"))
        step = _step(plan, "75_install_aur_packages")
        *lookups, install = step.commands
        assert [c.argv for c in lookups] == [
            ("yay", "--aur", "-Ssq", "^paru-bin$"),
            ("yay", "--aur", "-Ssq", "^cava$"),
        ]
        assert [c.checks_package for c in lookups] == ["paru-bin", "cava"]
        assert install.argv[0] == "yay"
        assert install.checks_package is None
        assert all(c.user == "alice" for c in step.commands)


class TestRepositories:
    def test_chaotic_aur_runs_first(self):
        ids = _ids(ProvisioningPlan(chaotic_aur=True, extra_packages=("nodejs",)))
        assert ids[:3] == ["03_add_chaotic_aur", "05_check_packages", "10_install_base"]
        assert "03_add_chaotic_aur" not in _ids(ProvisioningPlan())

    def test_chaotic_aur_key_then_repo(self):
        step = _step(ProvisioningPlan(chaotic_aur=True), "03_add_chaotic_aur")
        argvs = [c.argv for c in step.commands]
        assert argvs[0] == ("pacman-key", "--init")
        assert any("--lsign-key" in a for a in argvs)
        assert argvs[-1][:2] == ("sh", "-c")
        assert "[chaotic-aur]" in argvs[-1][2]
        assert argvs[-1][2].endswith(">> /etc/pacman.conf")
        assert not step.tolerate_failure

    def test_update_pkgfile_step(self):
        plan = ProvisioningPlan(update_pkgfile=True)
        ids = _ids(plan)
        assert ids.index("15_create_user") < ids.index("25_update_pkgfile") < ids.index("30_change_shell")
        assert _step(plan, "25_update_pkgfile").commands[0].argv == ("pkgfile", "-u")
        assert "pkgfile" in _install_packages(plan)

    def test_staging_already_refreshes_pkgfile(self):
        ids = _ids(ProvisioningPlan(update_pkgfile=True, stage_command_not_found=True))
        assert "20_stage_command_not_found" in ids
        assert "25_update_pkgfile" not in ids
        assert _install_packages(ProvisioningPlan(update_pkgfile=True, stage_command_not_found=True)).count("pkgfile") == 1
