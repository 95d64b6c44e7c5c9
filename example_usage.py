"""Example usage of the cloudlet simulator."""

from cloudlet_sim import CloudSimulator, DatacenterSpec, HostSpec
from cloudlet_sim.data import CloudletGenerator, uniform_vms
from cloudlet_sim.evaluation import SimulationAnalyzer


def main():
    """Run the single-host, three-VM, eight-cloudlet scenario."""

    print("=" * 70)
    print("Cloudlet Simulator - Example Usage")
    print("=" * 70)
    print()

    simulator = CloudSimulator()
    simulator.build_datacenter(DatacenterSpec(
        hosts=[HostSpec(pe_count=1, mips_per_pe=1000, ram=4096, bw=10000, storage=1000000)]
    ))
    simulator.submit_vms(uniform_vms(3))

    generator = CloudletGenerator(seed=42)
    simulator.submit_cloudlets(generator.generate_cloudlets(8))

    print("Running simulation...")
    result = simulator.run()
    print()

    print(f"{'Cloudlet ID':<14}{'STATUS':<10}{'Priority':<10}{'Data center ID':<16}{'VM ID':<8}{'Time':>8}")
    for record in result.records:
        if record.status.value == "success":
            print(f"{record.cloudlet_id:<14}{'SUCCESS':<10}{int(record.priority):<10}"
                  f"{record.datacenter_id:<16}{record.vm_id:<8}{record.actual_cpu_time:>8.2f}")
        else:
            print(f"{record.cloudlet_id:<14}FAILED")
    print()

    analysis = SimulationAnalyzer().analyze_simulation(result)
    summary = analysis['summary']
    print(f"Succeeded: {summary['successful_cloudlets']}/{summary['total_cloudlets']}, "
          f"VMs created: {summary['vms_created']}, failed: {summary['vms_failed']}")
    print(f"Makespan: {analysis['timing_metrics']['makespan']:.2f}s, "
          f"total cost: {analysis['cost_metrics']['total_cost']:.2f}")


if __name__ == "__main__":
    main()
