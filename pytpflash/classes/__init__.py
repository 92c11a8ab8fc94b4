from .classes import equil_type, alpha_method, ss_state, class_dic
