from lbsim import Request, Server


def make_request(rid=0, cpu=10.0, mem=6.0, duration=100.0, arrival=0.0):
    return Request(id=rid, cpu_demand=cpu, memory_demand=mem,
                   service_duration=duration, arrival_time=arrival)


def loaded_server(n_active=0, cpu=1.0, mem=1.0):
    s = Server()
    for i in range(n_active):
        s.admit(make_request(rid=i, cpu=cpu, mem=mem))
    return s
